"""AppUser model - people who sign in and edit a company's invoices."""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from werkzeug.security import generate_password_hash, check_password_hash
from invoicing.database import Base, IdType, utcnow


class AppUser(Base):
    """AppUser model - email/password users, each belonging to one company."""

    __tablename__ = 'app_user'

    id = Column(IdType, primary_key=True, autoincrement=True)
    company_id = Column(IdType, ForeignKey('company.id'), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    company = relationship('Company', back_populates='users')

    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part)

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'userID': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name or '',
            'email': self.email,
        }

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}')>"
