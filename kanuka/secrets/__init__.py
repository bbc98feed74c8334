# Envelope-encryption and access-state engine
from kanuka.secrets.filesystem import LocalFileSystem, MemoryFileSystem
from kanuka.secrets.project import EngineContext, ProjectLayout

__all__ = ["EngineContext", "LocalFileSystem", "MemoryFileSystem", "ProjectLayout"]
