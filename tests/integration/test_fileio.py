"""
Integration tests for catalog file persistence.

Tests cover:
- Creating, loading and rewriting the catalog file
- Stable, idempotent serialization
- Exclusive locking
- Corrupt and incomplete files
"""

import json
import os
import tempfile

import pytest

from codegen.modelgen.binding import Binding, BindingEntity, BindingProperty, BindingRelation
from codegen.modelgen.merge import merge_binding_with_model_info
from codegen.modelgen.modelinfo import (
    CatalogCorruptionError,
    ModelFile,
    ModelFileError,
    ModelFileLockedError,
    ModelInfo,
    RandomUidSource,
    UidGenerator,
    load_or_create_model,
)
from codegen.modelgen.modelinfo import fileio


def _populate(model):
    """Three entities with plain, indexed and to-one properties plus to-many relations."""
    binding = Binding(
        package="tasks",
        entities=[
            BindingEntity(
                "Task",
                properties=[
                    BindingProperty("id"),
                    BindingProperty("title", indexed=True),
                    BindingProperty("owner", relation_target="User"),
                ],
                relations=[BindingRelation("tags", target="Tag")],
            ),
            BindingEntity(
                "User",
                properties=[BindingProperty("id"), BindingProperty("email", indexed=True)],
            ),
            BindingEntity(
                "Tag",
                properties=[BindingProperty("id"), BindingProperty("label")],
                relations=[BindingRelation("users", target="User")],
            ),
        ],
    )
    merge_binding_with_model_info(binding, model)


class TestModelFile:
    """Integration tests for load_or_create_model() and ModelFile."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def path(self, data_dir):
        return os.path.join(data_dir, "entity-model.json")

    @pytest.fixture
    def generator(self):
        return UidGenerator(RandomUidSource(seed=7))

    def test_create_new_file(self, path):
        """A missing file is created with an empty catalog right away."""
        with load_or_create_model(path) as model:
            assert model.path == path
            assert model.entities == []

            with open(path, encoding="utf-8") as f:
                data = json.load(f)

        assert data["_note1"].startswith("KEEP THIS FILE!")
        assert data["entities"] == []
        assert data["retiredPropertyUids"] == []

    def test_persistence_round_trip(self, path, generator):
        """Write, reload and write again yields the same bytes."""
        with load_or_create_model(path, generator) as model:
            _populate(model)
            model.validate()
            model.write()

        with open(path, "rb") as f:
            first = f.read()

        with load_or_create_model(path) as reloaded:
            reloaded.validate()
            assert reloaded == model
            reloaded.write()

        with open(path, "rb") as f:
            second = f.read()

        assert first == second
        assert first.endswith(b"}\n")

    def test_reloaded_model_keeps_identities(self, path, generator):
        with load_or_create_model(path, generator) as model:
            _populate(model)
            model.write()
            task = model.find_entity_by_name("Task")

        with load_or_create_model(path) as reloaded:
            again = reloaded.find_entity_by_name("Task")
            assert again.id == task.id
            assert again.last_property_id == task.last_property_id
            assert again.find_property_by_name("title").index_id is not None
            assert again.relations[0].target_id == reloaded.find_entity_by_name("Tag").id

    def test_write_truncates(self, path, generator):
        """Shrinking the catalog leaves no stale bytes behind."""
        with load_or_create_model(path, generator) as model:
            _populate(model)
            model.write()

            model.remove_entity(model.find_entity_by_name("Tag"))
            model.write()
            expected = model.to_json()

        with open(path, encoding="utf-8") as f:
            assert f.read() == expected

    def test_second_open_is_locked(self, path):
        """Only one live catalog per file."""
        with load_or_create_model(path):
            with pytest.raises(ModelFileLockedError, match="is locked by another process") as exc_info:
                load_or_create_model(path)

        assert exc_info.value.code == "MODEL_FILE_LOCKED"

    def test_close_releases_lock(self, path):
        model = load_or_create_model(path)
        model.close()
        model.close()

        with load_or_create_model(path) as again:
            again.validate()

    def test_corrupt_json(self, path):
        with open(path, "w", encoding="utf-8") as f:
            f.write("{ not json")

        with pytest.raises(ModelFileError, match="can't read file"):
            load_or_create_model(path)

        # the failed load must not keep the lock
        ModelFile.open(path).close()

    def test_non_object_json(self, path):
        with open(path, "w", encoding="utf-8") as f:
            f.write("[]")

        with pytest.raises(ModelFileError, match="expected a JSON object"):
            load_or_create_model(path)

    def test_missing_retired_list(self, path):
        """Loading succeeds; validation reports the missing field."""
        data = ModelInfo.create().to_dict()
        del data["retiredIndexUids"]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)

        with load_or_create_model(path) as model:
            with pytest.raises(CatalogCorruptionError, match="retiredIndexUids are not defined"):
                model.validate()

    def _write_catalog(self, path, data):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    @pytest.mark.parametrize(
        "key,value",
        [
            ("entities", {}),
            ("retiredEntityUids", "123"),
            ("retiredIndexUids", 5),
            ("retiredPropertyUids", {}),
        ],
    )
    def test_non_array_list_is_corruption(self, path, key, value):
        """A required list of the wrong type is reported, never coerced."""
        data = ModelInfo.create().to_dict()
        data[key] = value
        self._write_catalog(path, data)

        with load_or_create_model(path) as model:
            with pytest.raises(CatalogCorruptionError, match=f"{key} are not defined or not an array"):
                model.validate()

    def test_non_array_properties_is_corruption(self, path):
        data = ModelInfo.create().to_dict()
        data["entities"] = [{"id": "1:10", "name": "Task", "lastPropertyId": "", "properties": {}}]
        data["lastEntityId"] = "1:10"
        self._write_catalog(path, data)

        with load_or_create_model(path) as model:
            with pytest.raises(CatalogCorruptionError, match="properties are not defined or not an array"):
                model.validate()

    @pytest.mark.parametrize(
        "change,message",
        [
            ({"retiredRelationUids": "1"}, "retiredRelationUids is not an array"),
            ({"retiredEntityUids": ["5"]}, "retired uid '5' is not a valid uid"),
            ({"retiredPropertyUids": [1.5]}, "retired uid 1.5 is not a valid uid"),
            ({"retiredIndexUids": [0]}, "retired uid 0 is not a valid uid"),
            (
                {"entities": [{"id": "1:10", "name": "Task", "properties": [], "relations": {}}]},
                "relations of entity Task is not an array",
            ),
        ],
    )
    def test_malformed_values_fail_to_load(self, path, change, message):
        data = ModelInfo.create().to_dict()
        data.update(change)
        self._write_catalog(path, data)

        with pytest.raises(ModelFileError, match=message):
            load_or_create_model(path)

        # the failed load must not keep the lock
        ModelFile.open(path).close()

    def test_create_never_overwrites_existing_file(self, path, generator):
        """A run that saw no file loads the one another run created meanwhile."""
        with load_or_create_model(path, generator) as model:
            model.create_entity("Task")
            model.write()

        with fileio._create_model(path, None) as model:
            assert [e.name for e in model.entities] == ["Task"]

        with load_or_create_model(path) as model:
            assert [e.name for e in model.entities] == ["Task"]

    def test_exclusive_create_refuses_existing_file(self, path):
        load_or_create_model(path).close()

        with pytest.raises(FileExistsError):
            ModelFile.open(path, create=True)

    def test_file_is_private(self, path):
        load_or_create_model(path).close()

        if os.name == "posix":
            assert os.stat(path).st_mode & 0o777 == 0o600

    def test_open_missing_file_without_create(self, path):
        with pytest.raises(ModelFileError, match="can't open file"):
            ModelFile.open(path)

    def test_closed_file_rejects_io(self, path):
        model_file = ModelFile.open(path, create=True)
        model_file.close()

        assert model_file.closed
        with pytest.raises(ModelFileError, match="is closed"):
            model_file.read()
