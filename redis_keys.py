REDIS_ROOM_RECORD_KEY = "room:record:{slug}" # room id - room history hash
REDIS_ROOM_PARTICIPANTS_KEY = "room:participants:{slug}" # room id - set of every connection ID that joined
REDIS_PARTICIPANT_KEY = "room:participant:{slug}:{connection_id}" # room id + connection id - join/leave hash
REDIS_ACTIVE_ROOMS_KEY = "rooms:active" # set of room ids with no closed_at

# **Example `room:record:{id}` hash fields**
# - `id` = `{roomId}`
# - `name` = display name (optional)
# - `created_at` = ISO timestamp
# - `closed_at` = ISO timestamp, absent while the room is live

# **Example `room:participant:{id}:{connId}` hash fields**
# - `joined_at` = ISO timestamp
# - `left_at` = ISO timestamp, absent while connected
