from pathlib import Path

import pytest

from database import LibraryStore, StateStore, create_databases
from utils.errors import FatalError, StorageError


def build_db_paths(root: Path) -> dict[str, Path]:
    return {
        "library": root / "library.sqlite",
        "state": root / "state.sqlite",
    }


def test_library_folders_and_assignments(tmp_path: Path) -> None:
    db_paths = build_db_paths(tmp_path)
    create_databases(db_paths)
    library = LibraryStore(db_paths["library"])

    photos = library.create_folder("Photos")
    travel = library.create_folder("Travel", parent=photos)
    first = library.add_media("beach.jpg", "image/jpeg", exif={"camera": "X100"})
    second = library.add_media("notes.pdf", "application/pdf")

    library.assign(first, travel)
    library.assign(first, photos)

    assert library.get_assignments(photos) == [first]
    assert library.get_assignments(travel) == []
    assert library.list_unassigned_media_ids() == [second]
    assert library.get_media(first).exif == {"camera": "X100"}
    assert {folder.name for folder in library.get_folder_tree()} == {"Photos", "Travel"}

    with pytest.raises(StorageError):
        library.assign(second, 9999)
    with pytest.raises(StorageError):
        library.create_folder("Orphan", parent=9999)

    assert library.delete_all_folders() == 2
    assert library.count_assignments() == 0
    assert library.list_unassigned_media_ids() == [first, second]
    library.close()


def test_state_update_record_rolls_back_on_error(tmp_path: Path) -> None:
    state = StateStore(build_db_paths(tmp_path)["state"])
    state.initialize()
    state.put_record("session", {"count": 1})

    def explode(data):
        data["count"] = 99
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        state.update_record("session", explode)

    assert state.get_record("session") == {"count": 1}
    updated = state.update_record("session", lambda data: {"count": data["count"] + 1})
    assert updated == {"count": 2}
    assert state.update_record("fresh", lambda data: data.update(seen=True), default={}) == {"seen": True}
    state.close()


def test_state_claims_one_job_at_a_time(tmp_path: Path) -> None:
    state = StateStore(build_db_paths(tmp_path)["state"])
    state.initialize()
    state.enqueue_job({"chunk_index": 0})
    state.enqueue_job({"chunk_index": 1})

    claimed = state.claim_job()
    assert claimed is not None
    job_id, descriptor, attempts = claimed
    assert descriptor == {"chunk_index": 0}
    assert attempts == 1
    assert state.claim_job() is None

    state.update_job_status(job_id, "done")
    assert state.claim_job()[1] == {"chunk_index": 1}
    assert state.requeue_active_jobs() == 1
    assert state.cancel_pending_jobs() == 1
    assert state.count_jobs("pending", "active") == 0
    state.close()


def test_state_store_without_schema_is_fatal(tmp_path: Path) -> None:
    state = StateStore(tmp_path / "uninitialized.sqlite")
    with pytest.raises(FatalError):
        state.get_record("scan_session")
    state.close()
