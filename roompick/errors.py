class RoomPickError(Exception):
    """Base exception for room errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RoomNotFoundError(RoomPickError):
    """Room id is unknown or has expired."""

    def __init__(self, room_id: str):
        super().__init__(f"Room not found: {room_id}", status_code=404)
        self.room_id = room_id


class InvalidInputError(RoomPickError):
    """Request rejected before touching room state."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class UpstreamUnavailableError(RoomPickError):
    """Candidate source failed or returned nothing usable."""

    def __init__(self, message: str):
        super().__init__(message, status_code=502)


class StaleRoomError(RoomPickError):
    """Room document changed since it was read."""

    def __init__(self, room_id: str, expected: int, actual: int | None = None):
        if actual is None:
            message = f"Room {room_id} changed while saving, expected version {expected}"
        else:
            message = f"Room {room_id} is at version {actual}, expected {expected}"
        super().__init__(message, status_code=409)
        self.room_id = room_id
        self.expected = expected
        self.actual = actual
