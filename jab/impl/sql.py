from typing import Any, Callable

from sqlalchemy import String, delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from jab.base import RegistryStore
from jab.errors import ConfigIOError
from jab.registry import ProjectConfig, ProjectRegistry


class Base(DeclarativeBase):
    pass


class ProjectModel(Base):
    __tablename__ = "projects"
    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    db_uri: Mapped[str] = mapped_column(String, nullable=False)


class SqlRegistryStore(RegistryStore):
    """Registry kept in a ``projects`` table instead of the JSON file."""

    def __init__(self, session_maker: Callable[[], Session]) -> None:
        self.session_maker = session_maker

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        p.text("SqlRegistryStore(...)")

    def ensure(self) -> None:
        try:
            with self.session_maker() as session:
                Base.metadata.create_all(session.get_bind())
        except SQLAlchemyError as exc:
            raise ConfigIOError(f"Failed to create registry tables: {exc}") from exc

    def read(self) -> ProjectRegistry:
        registry = ProjectRegistry.empty()
        try:
            with self.session_maker() as session:
                rows = session.execute(select(ProjectModel)).scalars().all()
                for row in rows:
                    registry.register_project_config(
                        ProjectConfig(name=row.name, db_uri=row.db_uri)
                    )
        except SQLAlchemyError as exc:
            raise ConfigIOError(f"Failed to read registry: {exc}") from exc
        return registry

    def persist(self, registry: ProjectRegistry) -> None:
        # Whole registry is rewritten in one transaction
        try:
            with self.session_maker() as session:
                session.execute(delete(ProjectModel))
                if registry.projects:
                    session.execute(
                        insert(ProjectModel),
                        [
                            {"name": config.name, "db_uri": config.db_uri}
                            for config in registry.projects.values()
                        ],
                    )
                session.commit()
        except SQLAlchemyError as exc:
            raise ConfigIOError(f"Failed to write registry: {exc}") from exc


def create_sql_registry_store(session_maker: Callable[[], Session]) -> SqlRegistryStore:
    return SqlRegistryStore(session_maker)
