"""
Persistent store for tenant configurations and enrolled persons.

SQLAlchemy over sqlite by default. Exposes only the narrow contract the
service needs: save/get tenant config, save person, list persons of a
tenant in insertion order.
"""

from pathlib import Path
from typing import List, Optional

from sqlalchemy import (
    BigInteger, Column, Integer, String, Text, UniqueConstraint, create_engine,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import AlreadyEnrolled, StorageError
from .logging_config import get_logger
from .models import PersonRecord, TenantConfig

logger = get_logger(__name__)

Base = declarative_base()


class TenantConfigRow(Base):
    __tablename__ = "tenant_configs"
    tenant_id = Column(String, primary_key=True)
    webhook_url = Column(Text, nullable=False)
    cache_expire_seconds = Column(Integer, nullable=False, default=3600)
    created_at = Column(BigInteger, nullable=False)


class PersonRow(Base):
    __tablename__ = "persons"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_persons_tenant_external"),
    )
    # Autoincrement key gives the storage scan order
    id = Column(Integer, primary_key=True, autoincrement=True)
    local_id = Column(String, unique=True, nullable=False, index=True)
    tenant_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    external_id = Column(String, nullable=False)
    feature_template = Column(Text, nullable=False)  # JSON array of floats
    enrolled_at = Column(BigInteger, nullable=False)
    image_path = Column(Text, nullable=True)


def _engine_kwargs(database_url: str) -> dict:
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return {}

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise every thread sees an empty db
        kwargs["poolclass"] = StaticPool
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return kwargs


def _to_config(row: TenantConfigRow) -> TenantConfig:
    return TenantConfig(
        tenant_id=row.tenant_id,
        webhook_url=row.webhook_url,
        cache_expire_seconds=row.cache_expire_seconds,
        created_at=row.created_at,
    )


def _is_external_id_violation(error: IntegrityError) -> bool:
    message = str(error.orig)
    return (
        "uq_persons_tenant_external" in message
        or "persons.tenant_id, persons.external_id" in message
    )


def _to_person(row: PersonRow) -> PersonRecord:
    return PersonRecord(
        local_id=row.local_id,
        tenant_id=row.tenant_id,
        display_name=row.name,
        external_id=row.external_id,
        feature_template=row.feature_template,
        enrolled_at=row.enrolled_at,
        image_path=row.image_path,
    )


class Storage:
    """
    SQLAlchemy-backed store.

    Opening the store creates the tables. Any failure to open raises
    StorageError, which the entry point treats as fatal.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        try:
            self.engine = create_engine(database_url, future=True, **_engine_kwargs(database_url))
            Base.metadata.create_all(self.engine)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Cannot open store {database_url}: {e}") from e

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        logger.info(f"Store opened: {make_url(database_url).render_as_string(hide_password=True)}")

    def close(self) -> None:
        self.engine.dispose()

    # ---------------------- tenant configs ----------------------

    def save_tenant_config(self, config: TenantConfig) -> TenantConfig:
        """
        Insert or replace a tenant's configuration.

        created_at is kept from the existing row when there is one, or
        taken from the config.

        Returns:
            The config as stored
        """
        db = self.SessionLocal()
        try:
            row = db.get(TenantConfigRow, config.tenant_id)
            if row is None:
                row = TenantConfigRow(tenant_id=config.tenant_id, created_at=config.created_at)
                db.add(row)
            row.webhook_url = config.webhook_url
            row.cache_expire_seconds = config.cache_expire_seconds
            db.commit()
            return _to_config(row)
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to save config for tenant {config.tenant_id}: {e}") from e
        finally:
            db.close()

    def get_tenant_config(self, tenant_id: str) -> Optional[TenantConfig]:
        db = self.SessionLocal()
        try:
            row = db.get(TenantConfigRow, tenant_id)
            return _to_config(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load config for tenant {tenant_id}: {e}") from e
        finally:
            db.close()

    # ---------------------- persons ----------------------

    def save_person(self, person: PersonRecord) -> None:
        """
        Insert a new person.

        Raises:
            AlreadyEnrolled: (tenant_id, external_id) already exists
            StorageError: Any other database failure, including a local_id collision
        """
        db = self.SessionLocal()
        try:
            if self._external_id_taken(db, person.tenant_id, person.external_id):
                raise AlreadyEnrolled(person.tenant_id, person.external_id)

            db.add(PersonRow(
                local_id=person.local_id,
                tenant_id=person.tenant_id,
                name=person.display_name,
                external_id=person.external_id,
                feature_template=person.feature_template,
                enrolled_at=person.enrolled_at,
                image_path=person.image_path,
            ))
            db.commit()
        except IntegrityError as e:
            db.rollback()
            # a concurrent enrollment won the race past the check above
            if _is_external_id_violation(e):
                raise AlreadyEnrolled(person.tenant_id, person.external_id) from e
            raise StorageError(f"Failed to save person {person.local_id}: {e}") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to save person {person.local_id}: {e}") from e
        finally:
            db.close()

    def _external_id_taken(self, db, tenant_id: str, external_id: str) -> bool:
        existing = (
            db.query(PersonRow.id)
            .filter(PersonRow.tenant_id == tenant_id, PersonRow.external_id == external_id)
            .first()
        )
        return existing is not None

    def list_persons_by_tenant(self, tenant_id: str) -> List[PersonRecord]:
        """Return all persons of a tenant in insertion order."""
        db = self.SessionLocal()
        try:
            rows = (
                db.query(PersonRow)
                .filter(PersonRow.tenant_id == tenant_id)
                .order_by(PersonRow.id)
                .all()
            )
            return [_to_person(r) for r in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list persons for tenant {tenant_id}: {e}") from e
        finally:
            db.close()
