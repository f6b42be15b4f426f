import pytest

from database import LibraryStore, StateStore
from operations import BackupManager
from utils.errors import BackupError


def test_export_restore_round_trip(library: LibraryStore, state: StateStore) -> None:
    photos = library.create_folder("Photos", description="all photos")
    travel = library.create_folder("Travel", parent=photos)
    library.create_folder("Rome", parent=travel)
    docs = library.create_folder("Docs")
    items = [library.add_media(f"{index}.jpg", "image/jpeg") for index in range(4)]
    library.assign(items[0], photos)
    library.assign(items[1], travel)
    library.assign(items[2], travel)
    library.assign(items[3], docs)
    manager = BackupManager(library, state)

    snapshot = manager.export()
    library.delete_all_folders()
    library.create_folder("Leftover")
    stats = manager.restore()

    assert len(snapshot["folders"]) == 4
    assert stats.folders_restored == 4
    assert stats.assignments_restored == 4
    assert library.count_folders() == 4
    assert library.count_assignments() == 4
    paths = {folder.name: folder for folder in library.get_folder_tree()}
    assert paths["Rome"].parent == paths["Travel"].id
    assert paths["Travel"].parent == paths["Photos"].id
    assert paths["Photos"].description == "all photos"
    assert library.folder_of(items[1]) == paths["Travel"].id


def test_backup_info_and_cleanup(library: LibraryStore, state: StateStore) -> None:
    manager = BackupManager(library, state)
    assert manager.has_backup() is False
    assert manager.get_backup_info().exists is False

    folder = library.create_folder("Photos")
    library.assign(library.add_media("a.jpg", "image/jpeg"), folder)
    manager.export()
    info = manager.get_backup_info()

    assert info.exists is True
    assert info.folder_count == 1
    assert info.assignment_count == 1
    assert info.age_seconds is not None and info.age_seconds >= 0
    assert manager.cleanup() is True
    assert manager.has_backup() is False


def test_restore_without_snapshot_fails(library: LibraryStore, state: StateStore) -> None:
    with pytest.raises(BackupError):
        BackupManager(library, state).restore()
