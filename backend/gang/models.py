from gang import db


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(6), primary_key=True)
    phase = db.Column(db.String(32), nullable=False, default='waiting')
    host_id = db.Column(db.String(32), nullable=True)
    max_players = db.Column(db.Integer, nullable=False)
    min_players = db.Column(db.Integer, nullable=False)
    game_mode = db.Column(db.String(32), nullable=False, default='single')
    series_length = db.Column(db.Integer, nullable=False, default=5)
    series_wins = db.Column(db.Integer, nullable=False, default=0)
    series_losses = db.Column(db.Integer, nullable=False, default=0)
    dealer_index = db.Column(db.Integer, nullable=False, default=0)
    # JSON-encoded fields
    community_cards = db.Column(db.Text, nullable=True)
    token_pool = db.Column(db.Text, nullable=True)
    token_assignments = db.Column(db.Text, nullable=True)
    betting_round_history = db.Column(db.Text, nullable=True)
    action_log = db.Column(db.Text, nullable=True)
    deck = db.Column(db.Text, nullable=True)
    last_game_result = db.Column(db.Text, nullable=True)
    current_turn = db.Column(db.String(32), nullable=True)
    state_version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.Float, nullable=False)
    updated_at = db.Column(db.Float, nullable=False, index=True)
    last_action = db.Column(db.Float, nullable=True)
    players = db.relationship(
        'Player',
        back_populates='room',
        order_by='Player.seat',
        cascade='all, delete-orphan',
    )


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.String(32), primary_key=True)
    room_id = db.Column(db.String(6), db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, index=True)
    seat = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(64), nullable=False)
    connection_id = db.Column(db.String(64), nullable=True, index=True)
    pocket_cards = db.Column(db.Text, nullable=True)
    ready = db.Column(db.Boolean, default=False, nullable=False)
    connected = db.Column(db.Boolean, default=True, nullable=False)
    at_table = db.Column(db.Boolean, default=True, nullable=False)
    last_seen = db.Column(db.Float, nullable=False)
    room = db.relationship('Room', back_populates='players')
