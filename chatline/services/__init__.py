from .account_directory import AccountDirectory, SqlAccountDirectory
from .message_store import MessageStore, InMemoryMessageStore, MongoMessageStore

__all__ = [
    "AccountDirectory",
    "SqlAccountDirectory",
    "MessageStore",
    "InMemoryMessageStore",
    "MongoMessageStore",
]
