"""
Core models: append-only base for evidence tables.

Rows of an append-only model are written once and never changed. The
restriction is enforced at the ORM level on both instances and querysets,
so neither application code nor the admin can rewrite history.
"""
from django.db import models


class ImmutableRecordError(Exception):
    """Raised when code tries to modify or remove an append-only row."""
    pass


class AppendOnlyQuerySet(models.QuerySet):
    """QuerySet that refuses bulk updates and deletes."""

    def update(self, **kwargs):
        raise ImmutableRecordError(
            f"{self.model.__name__} rows are append-only and cannot be updated"
        )

    def delete(self):
        raise ImmutableRecordError(
            f"{self.model.__name__} rows are append-only and cannot be deleted"
        )

    delete.queryset_only = True


class AppendOnlyModel(models.Model):
    """
    Abstract base for append-only tables (audit log, session history,
    patient transfers).

    - save() only inserts; saving an already persisted row raises
    - delete() always raises
    """
    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                f"{self.__class__.__name__} {self.pk} is append-only and cannot be modified"
            )
        kwargs['force_insert'] = True
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            f"{self.__class__.__name__} {self.pk} is append-only and cannot be deleted"
        )
