from .mongodb import db, connect_to_mongo, close_mongo_connection

__all__ = ["db", "connect_to_mongo", "close_mongo_connection"]
