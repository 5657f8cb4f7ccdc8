"""Storage of chat robot definitions in a SQL database."""

from dataclasses import asdict, dataclass, fields

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError

_metadata = MetaData()

_robots = Table(
    "chat_robots",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("robot_id", Integer, nullable=False, default=0),
    Column("name", Text, nullable=False, default=""),
    Column("description", Text, nullable=False, default=""),
    Column("prompt", Text, nullable=False, default=""),
    Column("voice_type", Text, nullable=False, default=""),
    Column("volume", Integer, nullable=False, default=0),
    Column("speed", Integer, nullable=False, default=0),
)


class RepositoryError(Exception):
    """Raised when a database operation fails."""


@dataclass
class ChatRobot:
    id: int = 0
    robot_id: int = 0
    name: str = ""
    description: str = ""
    prompt: str = ""
    voice_type: str = ""
    volume: int = 0
    speed: int = 0

    def to_dict(self):
        """Return the robot as its JSON object."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        """Build a robot from a JSON object; keys match case-insensitively."""
        if not isinstance(data, dict):
            raise ValueError("robot must be a JSON object")
        lowered = {str(key).lower(): key for key in data}
        kwargs = {}
        for f in fields(cls):
            if f.name in data:
                raw = data[f.name]
            elif f.name in lowered:
                raw = data[lowered[f.name]]
            else:
                continue
            if raw is None:
                continue
            if f.type is int:
                if isinstance(raw, bool) or not isinstance(raw, int):
                    raise ValueError(f"field {f.name} must be an integer")
            elif not isinstance(raw, str):
                raise ValueError(f"field {f.name} must be a string")
            kwargs[f.name] = raw
        return cls(**kwargs)


class Repository:
    """Chat robot store; the table is created on first connection."""

    def __init__(self, dsn):
        try:
            self._engine = create_engine(dsn)
            _metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to connect database: {exc}") from exc

    def close(self):
        self._engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def create_robot(self, robot):
        """Insert ``robot``; a zero id is replaced by the generated one."""
        values = robot.to_dict()
        if robot.id == 0:
            del values["id"]
        try:
            with self._engine.begin() as conn:
                result = conn.execute(insert(_robots).values(**values))
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to create robot: {exc}") from exc
        robot.id = result.inserted_primary_key[0]
        return robot

    def delete_robot(self, robot_id):
        """Delete the robot with ``robot_id``; returns the number of rows removed."""
        try:
            with self._engine.begin() as conn:
                result = conn.execute(_robots.delete().where(_robots.c.id == robot_id))
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to delete robot: {exc}") from exc
        return result.rowcount

    def update_robot(self, robot):
        """Save every field of ``robot``, inserting it when no such row exists."""
        if robot.id == 0:
            return self.create_robot(robot)
        values = robot.to_dict()
        del values["id"]
        try:
            with self._engine.begin() as conn:
                result = conn.execute(update(_robots).where(_robots.c.id == robot.id).values(**values))
                if result.rowcount == 0:
                    exists = conn.execute(select(_robots.c.id).where(_robots.c.id == robot.id)).first()
                    if exists is None:
                        conn.execute(insert(_robots).values(**robot.to_dict()))
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to update robot: {exc}") from exc
        return robot

    def get_all_robots(self):
        """Return every stored robot, ordered by id."""
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(select(_robots).order_by(_robots.c.id)).all()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to query robots: {exc}") from exc
        return [ChatRobot(**dict(row._mapping)) for row in rows]