"""User account SQLAlchemy model"""

from sqlalchemy import Column, String, Text, CheckConstraint

from .base import Base


class UserAccount(Base):
    """Uploader summary for document listings.

    Rows are maintained by the external authentication provider; the vault
    only reads them to show who uploaded a document.
    """
    __tablename__ = "user_account"
    __table_args__ = (
        CheckConstraint(
            "role IN ('PATIENT', 'DOCTOR', 'STAFF')",
            name="ck_user_account_role",
        ),
    )

    id = Column(String(128), primary_key=True)
    name = Column(Text, nullable=False)
    role = Column(String(16), nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "role": self.role}
