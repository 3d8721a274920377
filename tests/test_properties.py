from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from flake.reconcile import reconcile

# Strategy: relative paths one or two levels deep built from safe name parts,
# with an optional leading dot so both dotfiles and VCS-prefixed names appear.
name_strategy = st.builds(
    lambda dot, stem: f"{dot}{stem}",
    st.sampled_from(["", ".", ".git"]),
    st.text(alphabet="abcxyz_-", min_size=1, max_size=6),
)
path_strategy = st.lists(name_strategy, min_size=1, max_size=2).map("/".join)

# Each tracked path maps to (store content, home content or None if absent).
layout_strategy = st.dictionaries(
    path_strategy,
    st.tuples(st.binary(max_size=32), st.one_of(st.none(), st.binary(max_size=32))),
    max_size=8,
)


def _is_vcs(relative: str) -> bool:
    return any(part.startswith(".git") for part in relative.split("/"))


def _materialize(root: Path, relative: str, content: bytes) -> bool:
    """Writes a file unless a path component already exists as the other kind."""
    target = root / relative
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_dir():
            return False
        target.write_bytes(content)
    except (FileExistsError, NotADirectoryError):
        return False
    return True


@settings(max_examples=60, deadline=None)
@given(layout=layout_strategy)
def test_reconcile_mirror_and_deletion_invariants(
    tmp_path_factory: pytest.TempPathFactory, layout: dict
) -> None:
    """
    Property: after reconcile, every tracked store file equals its home
    counterpart, tracked files missing from home are gone, and VCS-prefixed
    entries are left exactly as they were.
    """
    base = tmp_path_factory.mktemp("case")
    home, store = base / "home", base / "store"
    home.mkdir()
    store.mkdir()

    written: dict[str, tuple[bytes, bytes | None]] = {}
    for relative, (store_bytes, home_bytes) in layout.items():
        if not _materialize(store, relative, store_bytes):
            continue
        # Home only mirrors paths the store accepted, so this cannot conflict.
        if home_bytes is not None:
            assert _materialize(home, relative, home_bytes)
        written[relative] = (store_bytes, home_bytes)

    report = reconcile(home, store)
    assert report.warnings == []

    for relative, (store_bytes, home_bytes) in written.items():
        target = store / relative
        if _is_vcs(relative):
            assert target.read_bytes() == store_bytes
        elif home_bytes is None:
            assert not target.exists()
        else:
            assert target.read_bytes() == home_bytes


@settings(max_examples=30, deadline=None)
@given(contents=st.lists(st.binary(max_size=16), min_size=1, max_size=5))
def test_reconcile_is_idempotent(
    tmp_path_factory: pytest.TempPathFactory, contents: list[bytes]
) -> None:
    """Property: a second pass with no home changes leaves the store untouched."""
    base = tmp_path_factory.mktemp("idem")
    home, store = base / "home", base / "store"
    home.mkdir()
    store.mkdir()
    for i, data in enumerate(contents):
        (home / f".rc{i}").write_bytes(data)
        (store / f".rc{i}").write_bytes(b"stale")

    reconcile(home, store)
    first = {p.name: p.read_bytes() for p in store.iterdir()}
    reconcile(home, store)
    second = {p.name: p.read_bytes() for p in store.iterdir()}

    assert first == second
    assert first == {f".rc{i}": data for i, data in enumerate(contents)}
