# clipshare/constants.py
# Realtime channel event names

# server -> client, scoped to a code's room
EVENT_CONTENT_UPDATED = "content-updated"
EVENT_CONTENT_RETRIEVED = "content-retrieved"
EVENT_VIEWERS_UPDATED = "viewers-updated"

# server -> client, sent only to the requesting connection
EVENT_ROOM_JOINED = "room-joined"
EVENT_ROOM_LEFT = "room-left"
EVENT_ERROR = "error"

# client -> server
CMD_JOIN_ROOM = "join-room"
CMD_LEAVE_ROOM = "leave-room"
CMD_IDENTIFY = "identify"
