"""
Client and Element Models

Client: the billing brand commissioning work across stores. Its element
lines carry per-client rates for catalogue elements.

Element: a billable branding component (flex, signage, ...) with a
standard rate.
"""

from sqlalchemy import Boolean, Column, Float, JSON, String

from app.models.base import BaseModel


class Element(BaseModel):
    __tablename__ = "elements"

    # Uniqueness is checked case-insensitively by the service
    name = Column(String(255), unique=True, nullable=False, index=True)
    standard_rate = Column(Float, default=0.0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Element(name={self.name})>"


class Client(BaseModel):
    """
    Client Model

    elements JSON structure:
        [{"elementId": "...", "elementName": "Flex", "customRate": 55.0, "quantity": 2}]
    """
    __tablename__ = "clients"

    client_code = Column(String(50), unique=True, nullable=False, index=True)
    client_name = Column(String(255), nullable=False, index=True)
    branch_name = Column(String(255), nullable=False)
    amount = Column(Float, default=0.0, nullable=False)
    gst_number = Column(String(50), nullable=True)
    elements = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Client(code={self.client_code}, name={self.client_name})>"
