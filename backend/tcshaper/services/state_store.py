"""
Persisted state shared by discovery, start and stop handling.

Both pieces of state live outside process memory so that a stop event
handled after a restart can still find what a start event created.
"""
import logging
import os
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StateStoreError
from ..models.database import ReflectorMapping, get_session_factory, init_db

logger = logging.getLogger(__name__)


class ReflectorStore:
    """
    Key-value store of container name -> reflector device name.

    One row per container; put() overwrites.
    """

    def __init__(self, database_url: str = "sqlite:///./tcshaper.db", echo: bool = False):
        """
        Initialize the store.

        Args:
            database_url: SQLAlchemy database URL
            echo: If True, log SQL statements

        Raises:
            StateStoreError: If the database cannot be opened
        """
        try:
            self.engine = init_db(database_url, echo=echo)
        except (SQLAlchemyError, OSError) as e:
            raise StateStoreError(f"cannot open state database {database_url}: {e}") from e
        self.Session = get_session_factory(self.engine)

    def close(self):
        """Release database connections."""
        self.engine.dispose()

    def put(self, name: str, reflector: str) -> None:
        try:
            with self.Session() as session:
                mapping = session.get(ReflectorMapping, name)
                if mapping:
                    mapping.reflector = reflector
                    mapping.updated_at = datetime.utcnow()
                else:
                    session.add(ReflectorMapping(container_name=name, reflector=reflector))
                session.commit()
        except SQLAlchemyError as e:
            raise StateStoreError(f"cannot record reflector of {name}: {e}") from e

    def get(self, name: str) -> Optional[str]:
        try:
            with self.Session() as session:
                mapping = session.get(ReflectorMapping, name)
                return mapping.reflector if mapping else None
        except SQLAlchemyError as e:
            raise StateStoreError(f"cannot read reflector of {name}: {e}") from e

    def delete(self, name: str) -> bool:
        """
        Remove the record of a container.

        Returns:
            True if a record existed
        """
        try:
            with self.Session() as session:
                mapping = session.get(ReflectorMapping, name)
                if not mapping:
                    return False
                session.delete(mapping)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise StateStoreError(f"cannot remove reflector record of {name}: {e}") from e

    def list(self) -> Dict[str, str]:
        try:
            with self.Session() as session:
                mappings = session.query(ReflectorMapping).order_by(ReflectorMapping.container_name).all()
                return {m.container_name: m.reflector for m in mappings}
        except SQLAlchemyError as e:
            raise StateStoreError(f"cannot list reflectors: {e}") from e


class NamespaceLinker:
    """
    Named handles to container network namespaces.

    A handle is a symlink at <netns_dir>/<container name> pointing at the
    container's sandbox, which makes `ip netns exec <name>` work.
    """

    def __init__(self, netns_dir: str = "/var/run/netns"):
        self.netns_dir = netns_dir

    def path(self, name: str) -> str:
        return os.path.join(self.netns_dir, name)

    def link(self, name: str, target: str) -> str:
        """Replace any stale handle for name with one pointing at target."""
        path = self.path(name)
        os.makedirs(self.netns_dir, exist_ok=True)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        os.symlink(target, path)
        logger.debug("Linked network namespace %s -> %s", path, target)
        return path

    def unlink(self, name: str) -> None:
        """
        Remove the handle of a stopped container.

        Raises:
            OSError: If the handle does not exist or cannot be removed
        """
        path = self.path(name)
        logger.debug("Removing network namespace handle %s", path)
        os.remove(path)
