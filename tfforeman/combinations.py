"""Reconcile the template combinations of provisioning templates.

Foreman replaces nested collections only partially: entries missing from an
update payload survive. To remove a combination the client must send it once
more, with its ID and `_destroy` set.

"""

from typing import Dict, List, NamedTuple, Tuple

from tfforeman.models import ProvisioningTemplate, TemplateCombination

Key = Tuple[int | None, int | None]


class CombinationDiff(NamedTuple):
    added: List[TemplateCombination]
    unchanged: List[TemplateCombination]
    removed: List[TemplateCombination]


def _index(combos: List[TemplateCombination]) -> Dict[Key, TemplateCombination]:
    # The last entry wins if the same pair appears more than once.
    return {_.key(): _ for _ in combos}


def diff(
    old: List[TemplateCombination], new: List[TemplateCombination]
) -> CombinationDiff:
    """Compare the persisted combinations `old` with the desired ones `new`.

    Combinations are identified by their (hostgroup_id, environment_id)
    pair. Unchanged entries keep the ID Foreman assigned to the persisted
    entry, unless `new` already carries one. All returned entries are
    copies without the `destroy` flag.

    """
    old_idx, new_idx = _index(old), _index(new)

    added, unchanged, removed = [], [], []
    for key, combo in new_idx.items():
        if key in old_idx:
            combo_id = combo.id if combo.id is not None else old_idx[key].id
            update = {"id": combo_id, "destroy": False}
            unchanged.append(combo.model_copy(update=update))
        else:
            added.append(combo.model_copy(update={"destroy": False}))

    for key, combo in old_idx.items():
        if key not in new_idx:
            removed.append(combo.model_copy(update={"destroy": False}))
    return CombinationDiff(added, unchanged, removed)


def reconcile(
    old: List[TemplateCombination], new: List[TemplateCombination]
) -> List[TemplateCombination]:
    """Return the combinations to send when `old` shall become `new`.

    Example:
        old = [A(id=1), B(id=2), C(id=3)], new = [A, B]
        -> [A(id=1), B(id=2), C(id=3, _destroy=True)]

    """
    ret = diff(old, new)
    removed = [_.model_copy(update={"destroy": True}) for _ in ret.removed]
    return ret.unchanged + ret.added + removed


def reconcile_template(
    old: ProvisioningTemplate, new: ProvisioningTemplate
) -> ProvisioningTemplate:
    """Return a copy of `new` whose combinations also remove stale entries."""
    combos = reconcile(
        old.template_combinations_attributes, new.template_combinations_attributes
    )
    return new.model_copy(update={"template_combinations_attributes": combos})
