from database import LibraryStore, MediaItem
from organization import Decision, FolderTree, HierarchyResolver, HierarchyState


def seed_tree(library: LibraryStore) -> dict[str, int]:
    outdoor = library.create_folder("Outdoor")
    events = library.create_folder("Events", parent=outdoor)
    docs = library.create_folder("Documents")
    archive = library.create_folder("Archive")
    videos = library.create_folder("Videos", parent=archive)
    return {"Outdoor": outdoor, "Outdoor/Events": events, "Documents": docs, "Archive/Videos": videos}


def test_paths_derive_from_parent_chain_and_sort(library: LibraryStore) -> None:
    ids = seed_tree(library)
    tree = FolderTree.from_store(library)

    assert tree.path_of(ids["Outdoor/Events"]) == "Outdoor/Events"
    assert list(tree.path_map()) == ["Archive", "Archive/Videos", "Documents", "Outdoor", "Outdoor/Events"]
    assert "Archive/Videos" not in tree.path_map(max_depth=1)
    assert tree.find_path("  outdoor /  EVENTS ") == ids["Outdoor/Events"]


def test_inverted_path_is_remapped_to_existing(library: LibraryStore) -> None:
    ids = seed_tree(library)
    item = library.add_media("party.jpg", "image/jpeg")
    tree = FolderTree.from_store(library)
    resolver = HierarchyResolver(max_depth=3)
    state = HierarchyState(scan_id="s1")
    folder_count = library.count_folders()

    decision = Decision(action="create", new_folder_path="Events/Outdoor", confidence=0.8, reason="party")
    result = resolver.apply(decision, item, tree, state)

    assert result.action == "assign"
    assert result.folder_id == ids["Outdoor/Events"]
    assert result.folder_path == "Outdoor/Events"
    assert result.confidence == 0.72
    assert "Auto-remapped to existing folder: Outdoor/Events" in result.reason
    assert library.count_folders() == folder_count
    assert library.folder_of(item) == ids["Outdoor/Events"]
    assert decision.action == "create"


def test_inversion_guard_sees_folders_created_earlier_in_scan(library: LibraryStore) -> None:
    first = library.add_media("a.jpg", "image/jpeg")
    second = library.add_media("b.jpg", "image/jpeg")
    resolver = HierarchyResolver(max_depth=3)
    state = HierarchyState(scan_id="s1")

    chunk_one = resolver.prepare_tree(FolderTree.from_store(library), state, simulate=True, empty=False)
    resolver.apply(Decision(action="create", new_folder_path="Nature/Birds", confidence=0.9, reason="x"), first, chunk_one, state)
    chunk_two = resolver.prepare_tree(FolderTree.from_store(library), state, simulate=True, empty=False)
    result = resolver.apply(
        Decision(action="create", new_folder_path="Birds/Nature", confidence=0.5, reason="y"), second, chunk_two, state
    )

    assert state.created_paths == ["Nature", "Nature/Birds"]
    assert result.action == "assign"
    assert result.folder_path == "Nature/Birds"
    assert library.count_folders() == 0


def test_creation_is_idempotent_and_depth_limited(library: LibraryStore) -> None:
    item = library.add_media("x.jpg", "image/jpeg")
    tree = FolderTree.from_store(library)
    resolver = HierarchyResolver(max_depth=2)
    state = HierarchyState()

    first = resolver.apply(Decision(action="create", new_folder_path="Travel/Italy/Rome", confidence=1, reason="r"), item, tree, state)
    second = resolver.apply(Decision(action="create", new_folder_path="travel / ITALY", confidence=1, reason="r"), item, tree, state)

    assert first.new_folder_path == "Travel/Italy"
    assert second.folder_id == first.folder_id
    assert library.count_folders() == 2
    assert state.suggested_folders == ["Travel/Italy"]


def test_simulated_tree_never_touches_store(library: LibraryStore) -> None:
    seed_tree(library)
    item = library.add_media("x.jpg", "image/jpeg")
    resolver = HierarchyResolver()
    state = HierarchyState()
    shadow = resolver.prepare_tree(FolderTree.from_store(library), state, simulate=True, empty=True)

    assert len(shadow) == 0
    result = resolver.apply(Decision(action="create", new_folder_path="Images", confidence=1, reason="r"), item, shadow, state)

    assert result.folder_id < 0
    assert library.count_folders() == 5
    assert library.folder_of(item) is None


def test_type_routing_prefers_top_level_then_named_folder(library: LibraryStore) -> None:
    ids = seed_tree(library)
    tree = FolderTree.from_store(library)
    resolver = HierarchyResolver()
    pdf = MediaItem(id=1, filename="r.pdf", mime_type="application/pdf")
    video = MediaItem(id=2, filename="v.mp4", mime_type="video/mp4")
    song = MediaItem(id=3, filename="s.mp3", mime_type="audio/mpeg")
    photo = MediaItem(id=4, filename="p.jpg", mime_type="image/jpeg")

    assert resolver.route(pdf, tree, allow_new_folders=False).folder_id == ids["Documents"]
    assert resolver.route(video, tree, allow_new_folders=False).folder_id == ids["Archive/Videos"]
    assert resolver.route(song, tree, allow_new_folders=True).new_folder_path == "Audio"
    assert resolver.route(song, tree, allow_new_folders=False).action == "skip"
    assert resolver.route(photo, tree, allow_new_folders=True) is None
