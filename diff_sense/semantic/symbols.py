"""Structural symbol model and symbol-set diffing."""

from __future__ import annotations

from dataclasses import dataclass

from diff_sense.models import SemanticDelta, Severity

RENAMEABLE_KINDS = frozenset({"function", "class", "interface", "type", "enum"})


@dataclass(frozen=True, slots=True)
class Member:
    """A property or method declared inside a class, interface or enum."""

    name: str
    optional: bool = False
    signature: str = ""


@dataclass(frozen=True, slots=True)
class Symbol:
    """A top-level declaration with enough shape to compare two versions."""

    name: str
    kind: str
    exported: bool
    parameters: tuple[str, ...] = ()
    returns: str | None = None
    members: tuple[Member, ...] = ()
    definition: str | None = None

    @property
    def shape(self) -> tuple[object, ...]:
        return (self.kind, self.parameters, self.returns, self.members, self.definition)

    def describe(self) -> str:
        prefix = "exported " if self.exported else ""
        return f"{prefix}{self.kind} {self.name}"


SymbolTable = dict[str, Symbol]


def diff_symbols(old: SymbolTable, new: SymbolTable) -> list[SemanticDelta]:
    """Compare two symbol tables by name.

    Removed and added symbols of the same kind and shape are paired into a
    single ``symbol_renamed`` delta. Output order: renames and removals in
    pre-image order, then changed symbols, then additions in post-image order.
    """
    removed = [symbol for name, symbol in old.items() if name not in new]
    added = [symbol for name, symbol in new.items() if name not in old]

    deltas: list[SemanticDelta] = []
    unpaired_added = list(added)
    for symbol in removed:
        partner = _rename_partner(symbol, unpaired_added)
        if partner is not None:
            unpaired_added.remove(partner)
            deltas.append(
                SemanticDelta(
                    type="symbol_renamed",
                    description=f"rename {symbol.describe()} to {partner.name}",
                    severity="high" if symbol.exported else "low",
                    affected_symbol=symbol.name,
                    symbol_kind=symbol.kind,
                    exported=symbol.exported,
                    detail=partner.name,
                )
            )
            continue
        deltas.append(
            SemanticDelta(
                type="symbol_removed",
                description=f"remove {symbol.describe()}",
                severity="high" if symbol.exported else "low",
                affected_symbol=symbol.name,
                symbol_kind=symbol.kind,
                exported=symbol.exported,
            )
        )

    for name, before in old.items():
        after = new.get(name)
        if after is not None:
            delta = compare_symbol(before, after)
            if delta is not None:
                deltas.append(delta)

    for symbol in unpaired_added:
        deltas.append(
            SemanticDelta(
                type="symbol_added",
                description=f"add {symbol.describe()}",
                severity="medium" if symbol.exported else "low",
                affected_symbol=symbol.name,
                symbol_kind=symbol.kind,
                exported=symbol.exported,
            )
        )
    return deltas


def compare_symbol(before: Symbol, after: Symbol) -> SemanticDelta | None:
    """Return a delta when a symbol present in both versions changed shape or visibility."""
    if before.exported and not after.exported:
        return _signature_delta(
            before, after, "visibility_reduced", f"stop exporting {before.kind} {before.name}"
        )
    if not before.exported and after.exported and before.shape == after.shape:
        return SemanticDelta(
            type="symbol_added",
            description=f"export existing {after.kind} {after.name}",
            severity="medium",
            affected_symbol=after.name,
            symbol_kind=after.kind,
            exported=True,
            detail="visibility_expanded",
        )
    if before.shape == after.shape:
        return None

    label = after.describe()
    if before.kind != after.kind:
        description = f"change {before.kind} {before.name} to {after.kind}"
        return _signature_delta(before, after, "parameters_changed", description)
    if before.parameters != after.parameters:
        return _signature_delta(
            before,
            after,
            "parameters_changed",
            f"change parameters of {label} ({len(before.parameters)} -> {len(after.parameters)})",
        )

    old_members = {member.name: member for member in before.members}
    new_members = {member.name: member for member in after.members}
    dropped = [name for name in old_members if name not in new_members]
    if dropped:
        return _signature_delta(
            before,
            after,
            "member_removed",
            f"remove {_join(dropped)} from {label}",
        )
    if after.kind not in {"class", "enum"}:
        required = [
            name
            for name, member in new_members.items()
            if not member.optional and (name not in old_members or old_members[name].optional)
        ]
        if required:
            return _signature_delta(
                before, after, "member_made_required", f"require {_join(required)} in {label}"
            )
    reshaped = [
        name
        for name, member in old_members.items()
        if name in new_members and new_members[name].signature != member.signature
    ]
    if reshaped:
        return _signature_delta(
            before, after, "parameters_changed", f"change {_join(reshaped)} in {label}"
        )
    if before.returns != after.returns:
        return _signature_delta(before, after, "return_changed", f"change return type of {label}")
    introduced = [name for name in new_members if name not in old_members]
    if introduced:
        optional = after.kind in {"class", "enum"} or all(
            new_members[name].optional for name in introduced
        )
        suffix = " (optional)" if optional else ""
        return _signature_delta(
            before,
            after,
            "member_added",
            f"add {_join(introduced)} to {label}{suffix}",
            additive=optional,
        )
    if before.definition != after.definition:
        return _signature_delta(before, after, "type_changed", f"change definition of {label}")
    return None


def _signature_delta(
    before: Symbol,
    after: Symbol,
    detail: str,
    description: str,
    *,
    additive: bool = False,
) -> SemanticDelta:
    visible = before.exported or after.exported
    severity: Severity
    if additive:
        severity = "medium" if visible else "low"
    else:
        severity = "high" if visible else "medium"
    return SemanticDelta(
        type="signature_changed",
        description=description,
        severity=severity,
        affected_symbol=after.name,
        symbol_kind=after.kind,
        exported=visible,
        detail=detail,
    )


def _rename_partner(symbol: Symbol, candidates: list[Symbol]) -> Symbol | None:
    if symbol.kind not in RENAMEABLE_KINDS:
        return None
    for candidate in candidates:
        if candidate.shape == symbol.shape:
            return candidate
    return None


def _join(names: list[str]) -> str:
    return ", ".join(names)
