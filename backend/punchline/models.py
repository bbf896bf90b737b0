from punchline import db
import json
import time


class Deck(db.Model):
    __tablename__ = 'deck'
    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    language = db.Column(db.String(16), nullable=False, default='en')
    is_official = db.Column(db.Boolean, nullable=False, default=False)
    content_warning = db.Column(db.Boolean, nullable=False, default=False)
    cards = db.relationship('Card', back_populates='deck', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'language': self.language,
            'is_official': self.is_official,
            'content_warning': self.content_warning,
        }


class Card(db.Model):
    __tablename__ = 'card'
    id = db.Column(db.String(64), primary_key=True)
    deck_id = db.Column(db.String(64), db.ForeignKey('deck.id'), nullable=False, index=True)
    card_type = db.Column(db.String(16), nullable=False)  # prompt, answer
    text = db.Column(db.Text, nullable=False)
    pick = db.Column(db.Integer, nullable=True)  # prompt cards only
    content_warning = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    deck = db.relationship('Deck', back_populates='cards')


class GameRecord(db.Model):
    """One row per game. ``state`` holds the full aggregate document.

    ``version`` is SQLAlchemy's version counter: every UPDATE is issued as
    ``... WHERE id = :id AND version = :read_version`` and a miss raises
    ``StaleDataError``.
    """

    __tablename__ = 'game'
    id = db.Column(db.String(32), primary_key=True)
    status = db.Column(db.String(16), nullable=False, default='lobby', index=True)
    host_id = db.Column(db.String(128), nullable=False)
    current_round = db.Column(db.Integer, nullable=False, default=0)
    state = db.Column(db.Text, nullable=False)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)

    __mapper_args__ = {'version_id_col': version}

    def load_document(self):
        return json.loads(self.state)

    def store_document(self, document):
        self.state = json.dumps(document, sort_keys=True)
        self.status = document['status']
        self.host_id = document['host_id']
        self.current_round = document.get('current_round') or 0
        self.updated_at = document.get('updated_at') or time.time()
