"""Interface minimale d'un store de documents.

Deux opérations: lecture filtrée par égalité et upsert avec fusion sur la
clé naturelle (jamais d'insertion en double). Les implémentations traduisent
leurs erreurs vers `RemoteUnavailable` / `MalformedResponse`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

Record = dict[str, Any]


def natural_key(record: Mapping[str, Any], conflict_key: Sequence[str]) -> tuple[str, ...]:
    """Extrait la clé naturelle d'un enregistrement.

    Raises:
        ValueError: si un champ de la clé est absent.
    """
    missing = [k for k in conflict_key if record.get(k) is None]
    if missing:
        raise ValueError(f"missing conflict key fields: {missing}")
    return tuple(str(record[k]) for k in conflict_key)


def matches(record: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(str(record.get(k)) == str(v) for k, v in filters.items())


class DocumentStore(ABC):
    """Store de documents par collection."""

    backend_name = "abstract"

    @abstractmethod
    async def get(self, collection: str, filters: Mapping[str, Any]) -> list[Record]:
        """Retourne les enregistrements dont tous les champs filtrés sont égaux."""
        raise NotImplementedError

    @abstractmethod
    async def upsert(
        self, collection: str, record: Record, conflict_key: Sequence[str]
    ) -> Record:
        """Insère ou fusionne `record` sur `conflict_key`; retourne l'état stocké."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Libère les ressources réseau éventuelles."""
        return None
