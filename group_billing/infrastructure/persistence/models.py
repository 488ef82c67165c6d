# group_billing/infrastructure/persistence/models.py
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Organizacion(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    tax_id = Column(String(50))
    address = Column(String(255))
    postal_code = Column(String(20))
    city = Column(String(100))
    province = Column(String(100))
    country = Column(String(100), default="España")
    email = Column(String(255))
    phone = Column(String(50))

    invoice_prefix = Column(String(20), nullable=False, default="")
    invoice_padding_length = Column(Integer, nullable=False, default=4)
    # Un contador por tipo de factura; solo se modifican con UPDATE condicional
    last_invoice_number = Column(Integer, nullable=False, default=0)
    last_simplified_invoice_number = Column(Integer, nullable=False, default=0)
    last_rectificative_invoice_number = Column(Integer, nullable=False, default=0)


class Cliente(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255))
    tax_id = Column(String(50))
    address = Column(String(255))
    postal_code = Column(String(20))
    city = Column(String(100))
    province = Column(String(100))
    email = Column(String(255))
    phone = Column(String(50))


class Profesional(Base):
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)


class Servicio(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    vat_rate = Column(Numeric(5, 2))
    irpf_rate = Column(Numeric(5, 2))
    retention_rate = Column(Numeric(5, 2))


class ActividadGrupal(Base):
    __tablename__ = "group_activities"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)

    professional = relationship("Profesional")
    participants = relationship("Participante", back_populates="activity", order_by="Participante.created_at")


class Participante(Base):
    __tablename__ = "group_activity_participants"

    id = Column(String(36), primary_key=True)
    group_activity_id = Column(Integer, ForeignKey("group_activities.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    status = Column(String(20), nullable=False, default="registered")
    created_at = Column(DateTime, server_default=func.now())

    activity = relationship("ActividadGrupal", back_populates="participants")
    client = relationship("Cliente")


class Factura(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("organization_id", "invoice_type", "invoice_number", name="uq_invoice_number_per_type"),
        # Clave de deduplicación: un cliente se factura una sola vez por actividad
        UniqueConstraint("group_activity_id", "client_id", name="uq_invoice_activity_client"),
    )

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=False, index=True)
    invoice_type = Column(String(20), nullable=False, default="normal")
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    group_activity_id = Column(Integer, ForeignKey("group_activities.id"), nullable=True, index=True)
    issue_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="sent")

    base_amount = Column(Numeric(12, 2), nullable=False)
    vat_amount = Column(Numeric(12, 2), nullable=False, default=0)
    irpf_amount = Column(Numeric(12, 2), nullable=False, default=0)
    retention_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)

    notes = Column(Text)
    pdf_url = Column(String(1024))
    created_by = Column(String(64))
    created_at = Column(DateTime, server_default=func.now())

    lines = relationship("LineaFactura", back_populates="invoice", cascade="all, delete-orphan")


class LineaFactura(Base):
    __tablename__ = "invoice_lines"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    vat_rate = Column(Numeric(5, 2), nullable=False, default=0)
    irpf_rate = Column(Numeric(5, 2), nullable=False, default=0)
    retention_rate = Column(Numeric(5, 2), nullable=False, default=0)
    line_amount = Column(Numeric(12, 2), nullable=False)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)

    invoice = relationship("Factura", back_populates="lines")
