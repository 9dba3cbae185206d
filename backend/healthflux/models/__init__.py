from healthflux.models.entity_record import EntityRecord

__all__ = ["EntityRecord"]
