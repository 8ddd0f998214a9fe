"""Access policies deciding which list actions a front end offers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class AccessPolicy(Protocol):
    """Per-type permission checks supplied by the host application.

    The engine never enforces these; front ends consult them to decide
    which actions to show or refuse.
    """

    def can_create(self, record_type: type) -> bool: ...

    def can_edit(self, record_type: type) -> bool: ...

    def can_delete(self, record_type: type) -> bool: ...

    def can_view(self, record_type: type) -> bool: ...

    def can_filter(self, record_type: type) -> bool: ...


class AllowAll:
    """Policy granting every action on every type."""

    def can_create(self, record_type: type) -> bool:
        return True

    def can_edit(self, record_type: type) -> bool:
        return True

    def can_delete(self, record_type: type) -> bool:
        return True

    def can_view(self, record_type: type) -> bool:
        return True

    def can_filter(self, record_type: type) -> bool:
        return True


class ReadOnly(AllowAll):
    """Policy allowing viewing and filtering only."""

    def can_create(self, record_type: type) -> bool:
        return False

    def can_edit(self, record_type: type) -> bool:
        return False

    def can_delete(self, record_type: type) -> bool:
        return False


ACTIONS = ("add", "clear", "import", "export", "filter", "view")


def available_actions(policy: AccessPolicy, record_type: type) -> set[str]:
    """Return the list-view actions a policy makes available for a type.

    Import replaces every record, so it needs create, edit and delete
    rights together. Export is always available.
    """
    actions = {"export"}
    if policy.can_create(record_type):
        actions.add("add")
    if policy.can_delete(record_type):
        actions.add("clear")
    if policy.can_edit(record_type) and policy.can_create(record_type) and policy.can_delete(record_type):
        actions.add("import")
    if policy.can_filter(record_type):
        actions.add("filter")
    if policy.can_view(record_type):
        actions.add("view")
    return actions
