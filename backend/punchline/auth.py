from flask_login import UserMixin


class Actor(UserMixin):
    """Player identity supplied by the upstream identity service.

    The gateway in front of this service authenticates the user and forwards
    the stable player id and display name as request headers.
    """

    def __init__(self, player_id, display_name=None):
        self.id = player_id
        self.display_name = display_name or player_id

    @classmethod
    def from_request(cls, request):
        player_id = (request.headers.get('X-Player-Id') or '').strip()
        if not player_id:
            return None
        return cls(player_id, (request.headers.get('X-Player-Name') or '').strip() or None)

    def to_dict(self):
        return {
            'id': self.id,
            'display_name': self.display_name,
        }
