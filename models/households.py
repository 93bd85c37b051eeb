"""
Household, HouseholdMember and HouseholdInvitation models.

A Household groups users into a shared data pool.  Rows of the accounting
tables with a ``household_id`` belong to that household; rows without one
belong to their owner's individual scope.

Creating a Household automatically inserts its creator as an ``admin``
member (see ``_add_creator_as_admin``).  Nothing enforces that an admin
remains afterwards.
"""
import secrets
from datetime import timedelta

from sqlalchemy import event

from extensions import db
from utils.dates import utcnow


class Household(db.Model):
    __tablename__ = 'households'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    created_by = db.relationship('User', foreign_keys=[created_by_id])
    members = db.relationship('HouseholdMember', back_populates='household',
                              lazy='dynamic', cascade='all')
    invitations = db.relationship('HouseholdInvitation', back_populates='household',
                                  lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'created_by_id': self.created_by_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Household {self.name}>'


class HouseholdMember(db.Model):
    __tablename__ = 'household_members'
    __table_args__ = (
        db.UniqueConstraint('household_id', 'user_id', name='uq_household_member'),
    )

    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.Integer, db.ForeignKey('households.id', ondelete='CASCADE'),
                             nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default='member')  # 'admin' | 'member'
    joined_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    household = db.relationship('Household', back_populates='members')
    user = db.relationship('User', back_populates='memberships')

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'household_id': self.household_id,
            'user_id': self.user_id,
            'name': self.user.name if self.user else None,
            'email': self.user.email if self.user else None,
            'role': self.role,
            'joined_at': self.joined_at.isoformat() if self.joined_at else None,
        }

    def __repr__(self):
        return f'<HouseholdMember household={self.household_id} user={self.user_id} role={self.role}>'


def _default_expiry():
    from flask import current_app, has_app_context
    days = 7
    if has_app_context():
        days = current_app.config.get('INVITATION_EXPIRY_DAYS', 7)
    return utcnow() + timedelta(days=days)


class HouseholdInvitation(db.Model):
    """One-time invite token for joining a household."""
    __tablename__ = 'household_invitations'

    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.Integer, db.ForeignKey('households.id', ondelete='CASCADE'),
                             nullable=False, index=True)
    email = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='member')
    token = db.Column(db.String(64), unique=True, nullable=False, index=True,
                      default=lambda: secrets.token_urlsafe(32))
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending | accepted | expired

    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, default=_default_expiry)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    household = db.relationship('Household', back_populates='invitations')
    created_by = db.relationship('User', foreign_keys=[created_by_id])

    @property
    def is_valid(self):
        """True if the invitation is still pending and has not expired."""
        return self.status == 'pending' and utcnow() <= self.expires_at

    def to_dict(self, include_token=False):
        data = {
            'id': self.id,
            'household_id': self.household_id,
            'household_name': self.household.name if self.household else None,
            'email': self.email,
            'role': self.role,
            'status': self.status,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }
        if include_token:
            data['token'] = self.token
        return data

    def __repr__(self):
        return f'<HouseholdInvitation {self.token[:8]}... role={self.role}>'


@event.listens_for(Household, 'after_insert')
def _add_creator_as_admin(mapper, connection, target):
    """Insert the creator as an admin member in the same flush."""
    connection.execute(
        HouseholdMember.__table__.insert().values(
            household_id=target.id,
            user_id=target.created_by_id,
            role='admin',
            joined_at=utcnow(),
        )
    )
