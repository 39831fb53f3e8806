"""
Actors and capabilities.

Authorization is keyed by operation, not by role name: services ask
"can this actor review a count?" and the role -> capability map decides.
The map can be overridden per project via STOCKLEDGER['CAPABILITIES'].

Usage:
    actor = Actor('ana@finca.co', Role.MANAGEMENT, user=request.user)
    require(actor, Capability.REVIEW_COUNT)
"""

from dataclasses import dataclass
from typing import Any

from django.db import models
from django.utils.translation import gettext_lazy as _

from stockledger.conf import stockledger_settings
from stockledger.exceptions import NotAuthorizedError, ValidationError


class Role(models.TextChoices):
    VERIFIER = 'verifier', _('Verificador')
    ADMINISTRATOR = 'administrator', _('Administrador')
    MANAGEMENT = 'management', _('Gerencia')


class Capability(models.TextChoices):
    RECORD_PURCHASE = 'record_purchase', _('Registrar compras')
    DELETE_PURCHASE = 'delete_purchase', _('Eliminar compras')
    COUNT_STOCK = 'count_stock', _('Realizar conteos físicos')
    REVIEW_COUNT = 'review_count', _('Aprobar o rechazar conteos')


DEFAULT_CAPABILITIES: dict[str, frozenset[str]] = {
    Role.VERIFIER: frozenset({
        Capability.RECORD_PURCHASE,
        Capability.COUNT_STOCK,
    }),
    Role.ADMINISTRATOR: frozenset(Capability.values),
    Role.MANAGEMENT: frozenset(Capability.values),
}


@dataclass(frozen=True)
class Actor:
    """
    Who performs an operation.

    identifier is stamped on every record the actor writes; user is the
    optional Django user, linked when the caller has one.
    """

    identifier: str
    role: str
    user: Any = None

    def __str__(self) -> str:
        return self.identifier


def capabilities_for(role: str) -> frozenset[str]:
    """Capabilities granted to a role (settings override the defaults)."""
    overrides = stockledger_settings.CAPABILITIES or {}
    if role in overrides:
        return frozenset(overrides[role])
    return DEFAULT_CAPABILITIES.get(role, frozenset())


def has_capability(actor: Actor, capability: str) -> bool:
    return capability in capabilities_for(actor.role)


def require(actor: Actor, capability: str) -> None:
    """
    Raise NotAuthorizedError unless actor holds capability.

    Raises:
        ValidationError('REQUIRED_FIELD'): If actor is missing or not an Actor
        NotAuthorizedError: If the actor's role lacks the capability
    """
    if not isinstance(actor, Actor) or not actor.identifier:
        raise ValidationError('REQUIRED_FIELD', field='actor')
    if not has_capability(actor, capability):
        raise NotAuthorizedError(
            actor=actor.identifier,
            role=actor.role,
            capability=str(capability),
        )
