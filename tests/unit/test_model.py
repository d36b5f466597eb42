"""
Unit tests for the model catalog.

Tests cover:
- Catalog, entity and property validation
- Sequential id allocation and model-wide uid uniqueness
- Removal and uid retirement
- Lookups and dictionary conversion
"""

import json

import pytest

from codegen.modelgen.modelinfo import (
    MODEL_NOTES,
    CatalogCorruptionError,
    DuplicateNameError,
    Entity,
    IdUid,
    InvalidIdUidError,
    ModelInfo,
    ModelInfoError,
    Property,
    SequenceUidSource,
    UidGenerator,
    UidNotFoundError,
)


def _entity(id, uid, name, properties=(), last_property_id=None):
    """Entity with properties given as (id, uid, name) tuples."""
    props = [Property(id=IdUid.create(p_id, p_uid), name=p_name) for p_id, p_uid, p_name in properties]
    if last_property_id is None and props:
        last_property_id = props[-1].id
    return Entity(
        id=IdUid.create(id, uid),
        name=name,
        last_property_id=last_property_id or IdUid(),
        properties=props,
    )


def _model(*entities, **kwargs):
    model = ModelInfo(entities=list(entities), **kwargs)
    if entities and "last_entity_id" not in kwargs:
        model.last_entity_id = entities[-1].id
    return model


class TestModelValidation:
    """Tests for ModelInfo.validate()."""

    def test_empty_model_is_valid(self):
        ModelInfo.create().validate()

    def test_valid_model(self):
        model = _model(
            _entity(1, 10, "Task", [(1, 11, "id"), (2, 12, "title")]),
            _entity(2, 20, "User", [(1, 21, "id")]),
        )
        model.validate()

    def test_entities_missing(self):
        with pytest.raises(CatalogCorruptionError, match="entities are not defined"):
            ModelInfo(entities=None).validate()

    @pytest.mark.parametrize(
        "attribute,key",
        [
            ("retired_entity_uids", "retiredEntityUids"),
            ("retired_index_uids", "retiredIndexUids"),
            ("retired_property_uids", "retiredPropertyUids"),
        ],
    )
    def test_retired_list_missing(self, attribute, key):
        """A missing retired list differs from an empty one."""
        model = ModelInfo()
        setattr(model, attribute, None)

        with pytest.raises(CatalogCorruptionError, match=f"{key} are not defined"):
            model.validate()

    def test_entity_name_missing(self):
        model = _model(_entity(1, 10, ""))

        with pytest.raises(CatalogCorruptionError, match="entity  1:10 is invalid: name is undefined"):
            model.validate()

    def test_entity_id_invalid(self):
        model = _model(Entity(id=IdUid("1:0"), name="Task"), last_entity_id=IdUid("1:0"))

        with pytest.raises(InvalidIdUidError, match="entity Task 1:0 is invalid: uid: equals zero"):
            model.validate()

    def test_last_entity_id_missing(self):
        model = _model(_entity(1, 10, "Task"), last_entity_id=IdUid())

        with pytest.raises(InvalidIdUidError, match="lastEntityId: is undefined"):
            model.validate()

    def test_last_entity_id_uid_mismatch(self):
        model = _model(_entity(1, 10, "Task"), last_entity_id=IdUid.create(1, 11))

        with pytest.raises(CatalogCorruptionError, match="lastEntityId 1:11 doesn't match entity Task 1:10"):
            model.validate()

    def test_last_entity_id_lower_than_entity(self):
        model = _model(
            _entity(1, 10, "Task"),
            _entity(2, 20, "User"),
            last_entity_id=IdUid.create(1, 10),
        )

        with pytest.raises(CatalogCorruptionError, match="is lower than entity User 2:20"):
            model.validate()

    def test_last_entity_id_not_found(self):
        model = _model(_entity(1, 10, "Task"), last_entity_id=IdUid.create(2, 20))

        with pytest.raises(CatalogCorruptionError, match="doesn't match any entity"):
            model.validate()

    def test_last_entity_id_may_be_retired(self):
        """The most recent entity may have been removed."""
        model = _model(
            _entity(1, 10, "Task"),
            last_entity_id=IdUid.create(2, 20),
            retired_entity_uids=[20],
        )
        model.validate()

    def test_duplicate_entity_names(self):
        model = _model(_entity(1, 10, "Task"), _entity(2, 20, "Task"))

        with pytest.raises(DuplicateNameError, match="duplicate entity name 'Task'") as exc_info:
            model.validate()
        assert exc_info.value.identities == ("1:10", "2:20")

    def test_entity_names_are_case_sensitive(self):
        model = _model(_entity(1, 10, "Task"), _entity(2, 20, "task"))
        model.validate()

    def test_invalid_last_index_id(self):
        model = ModelInfo(last_index_id=IdUid("3:"))

        with pytest.raises(InvalidIdUidError, match="lastIndexId: uid: can't parse"):
            model.validate()

    def test_invalid_last_relation_id(self):
        model = ModelInfo(last_relation_id=IdUid("0:9"))

        with pytest.raises(InvalidIdUidError, match="lastRelationId: id: equals zero"):
            model.validate()


class TestEntityValidation:
    """Tests for Entity.validate() as reached through the catalog."""

    def test_properties_missing(self):
        entity = Entity(id=IdUid.create(1, 10), name="Task", properties=None)

        with pytest.raises(CatalogCorruptionError, match="properties are not defined"):
            _model(entity).validate()

    def test_no_properties_is_valid(self):
        """Without properties, lastPropertyId isn't checked."""
        _model(_entity(1, 10, "Task")).validate()

    def test_last_property_id_mismatch(self):
        entity = _entity(1, 10, "Task", [(1, 11, "id")], last_property_id=IdUid.create(1, 99))

        with pytest.raises(
            CatalogCorruptionError,
            match="entity Task 1:10 is invalid: lastPropertyId 1:99 doesn't match property id 1:11",
        ):
            _model(entity).validate()

    def test_last_property_id_lower_than_property(self):
        entity = _entity(
            1, 10, "Task", [(1, 11, "id"), (2, 12, "title")], last_property_id=IdUid.create(1, 11)
        )

        with pytest.raises(CatalogCorruptionError, match="is lower than property title 2:12"):
            _model(entity).validate()

    def test_last_property_id_not_found(self):
        entity = _entity(1, 10, "Task", [(1, 11, "id")], last_property_id=IdUid.create(2, 12))

        with pytest.raises(CatalogCorruptionError, match="doesn't match any property"):
            _model(entity).validate()

    def test_last_property_id_may_be_retired(self):
        entity = _entity(1, 10, "Task", [(1, 11, "id")], last_property_id=IdUid.create(2, 12))

        _model(entity, retired_property_uids=[12]).validate()

    def test_last_property_id_missing(self):
        entity = _entity(1, 10, "Task", [(1, 11, "id")], last_property_id=IdUid())

        with pytest.raises(InvalidIdUidError, match="lastPropertyId: is undefined"):
            _model(entity).validate()

    def test_property_name_missing(self):
        entity = _entity(1, 10, "Task", [(1, 11, "")])

        with pytest.raises(CatalogCorruptionError, match="property  1:11 is invalid: name is undefined"):
            _model(entity).validate()

    def test_property_index_id_invalid(self):
        entity = _entity(1, 10, "Task", [(1, 11, "title")])
        entity.properties[0].index_id = IdUid("1:0")

        with pytest.raises(InvalidIdUidError, match="property title 1:11 is invalid: indexId: uid: equals zero"):
            _model(entity).validate()

    def test_duplicate_property_names(self):
        entity = _entity(1, 10, "Task", [(1, 11, "title"), (2, 12, "title")])

        with pytest.raises(DuplicateNameError, match="duplicate property name 'title'"):
            _model(entity).validate()


class TestAllocation:
    """Tests for creating entities, properties, indexes and relations."""

    def test_first_entity_gets_id_1(self, model):
        entity = model.create_entity("Task")

        assert entity.id.get_id() == 1
        assert model.last_entity_id == entity.id
        assert model.entities == [entity]
        model.validate()

    def test_entity_ids_are_sequential(self, model):
        ids = [model.create_entity(name).id.get_id() for name in ("A", "B", "C")]

        assert ids == [1, 2, 3]

    def test_entity_uids_are_unique(self, model):
        entities = [model.create_entity(f"E{n}") for n in range(20)]

        assert len({e.id.get_uid() for e in entities}) == 20

    def test_ids_stay_monotonic_after_removal(self, model):
        """Removing the newest entity doesn't free its id."""
        model.create_entity("A")
        b = model.create_entity("B")
        model.remove_entity(b)

        assert b.id.get_uid() in model.retired_entity_uids
        model.validate()

        c = model.create_entity("C")
        assert c.id.get_id() == 3

    def test_retired_uid_is_never_reused(self):
        generator = UidGenerator(SequenceUidSource([100, 100, 300]))
        model = ModelInfo.create(generator)

        model.remove_entity(model.create_entity("A"))
        again = model.create_entity("B")

        assert again.id.get_uid() == 300

    def test_property_uid_unique_model_wide(self):
        """A property never takes a uid used elsewhere in the model."""
        generator = UidGenerator(SequenceUidSource([100, 100, 200]))
        model = ModelInfo.create(generator)

        entity = model.create_entity("Task")
        prop = model.create_property(entity)

        assert entity.id.get_uid() == 100
        assert prop.id.get_uid() == 200

    def test_property_ids(self, model):
        entity = model.create_entity("Task")
        first = model.create_property(entity)
        second = model.create_property(entity)

        assert [first.id.get_id(), second.id.get_id()] == [1, 2]
        assert entity.last_property_id == second.id

    def test_property_ids_stay_monotonic_after_removal(self, model):
        entity = model.create_entity("Task")
        first = model.create_property(entity)
        first.name = "id"
        second = model.create_property(entity)
        second.name = "title"

        model.remove_property(entity, second)
        assert model.retired_property_uids == [second.id.get_uid()]
        model.validate()

        third = model.create_property(entity)
        assert third.id.get_id() == 3

    def test_create_and_remove_index(self, model):
        entity = model.create_entity("Task")
        prop = model.create_property(entity)
        prop.name = "title"

        index_id = model.create_index(prop)
        assert index_id.get_id() == 1
        assert model.last_index_id == index_id
        assert prop.index_id == index_id

        model.remove_index(prop)
        assert prop.index_id is None
        assert model.retired_index_uids == [index_id.get_uid()]

        # the index id pointer doesn't go back
        assert model.create_index(prop).get_id() == 2

    def test_create_index_twice_raises(self, model):
        prop = model.create_property(model.create_entity("Task"))
        model.create_index(prop)

        with pytest.raises(ModelInfoError, match="already exists"):
            model.create_index(prop)

    def test_remove_property_retires_index(self, model):
        entity = model.create_entity("Task")
        prop = model.create_property(entity)
        index_id = model.create_index(prop)

        model.remove_property(entity, prop)

        assert index_id.get_uid() in model.retired_index_uids
        assert prop.id.get_uid() in model.retired_property_uids

    def test_create_and_remove_relation(self, model):
        task = model.create_entity("Task")
        tag = model.create_entity("Tag")

        relation = model.create_relation(task)
        relation.name = "tags"
        relation.target_id = tag.id

        assert relation.id.get_id() == 1
        assert model.last_relation_id == relation.id
        model.validate()

        model.remove_relation(task, relation)
        assert task.relations == []
        assert model.retired_relation_uids == [relation.id.get_uid()]

    def test_remove_entity_retires_children(self, model):
        entity = model.create_entity("Task")
        prop = model.create_property(entity)
        index_id = model.create_index(prop)
        relation = model.create_relation(entity)

        model.remove_entity(entity)

        assert model.entities == []
        assert model.retired_entity_uids == [entity.id.get_uid()]
        assert model.retired_property_uids == [prop.id.get_uid()]
        assert model.retired_index_uids == [index_id.get_uid()]
        assert model.retired_relation_uids == [relation.id.get_uid()]

    def test_remove_unknown_entity_raises(self, model):
        with pytest.raises(ModelInfoError, match="not found"):
            model.remove_entity(Entity(id=IdUid.create(9, 9), name="Ghost"))

    def test_contains_uid(self, model):
        entity = model.create_entity("Task")
        prop = model.create_property(entity)

        assert model.contains_uid(entity.id.get_uid())
        assert model.contains_uid(prop.id.get_uid())
        assert not model.contains_uid(1)


class TestLookup:
    """Tests for entity and property lookup."""

    def test_find_entity(self, model):
        task = model.create_entity("Task")

        assert model.find_entity_by_name("Task") is task
        assert model.find_entity_by_uid(task.id.get_uid()) is task
        assert model.entity_index_by_name("Task") == 0

    def test_not_found_is_none(self, model):
        model.create_entity("Task")

        assert model.find_entity_by_name("task") is None
        assert model.find_entity_by_uid(1) is None
        assert model.entity_index_by_uid(1) is None

    def test_get_entity_by_uid_raises(self, model):
        with pytest.raises(UidNotFoundError, match="entity with uid 42 was not found"):
            model.get_entity_by_uid(42)

    def test_find_property(self, model):
        entity = model.create_entity("Task")
        prop = model.create_property(entity)
        prop.name = "title"

        assert entity.find_property_by_name("title") is prop
        assert entity.find_property_by_uid(prop.id.get_uid()) is prop
        assert entity.find_property_by_name("Title") is None


class TestSerialization:
    """Tests for dictionary/JSON conversion."""

    def test_new_model_has_notes(self):
        data = ModelInfo.create().to_dict()

        assert data["_note1"] == MODEL_NOTES[0]
        assert data["modelVersion"] == 1
        assert data["retiredEntityUids"] == []
        assert data["lastIndexId"] == ""

    def test_json_is_sorted_and_indented(self):
        text = ModelInfo.create().to_json()

        assert text.startswith('{\n  "_note1"')
        assert text.endswith("}\n")
        keys = list(json.loads(text).keys())
        assert keys == sorted(keys)

    def test_from_dict_restores_model(self, model):
        task = model.create_entity("Task")
        prop = model.create_property(task)
        prop.name = "title"
        model.create_index(prop)
        relation = model.create_relation(task)
        relation.name = "subtasks"
        relation.target_id = task.id

        restored = ModelInfo.from_dict(json.loads(model.to_json()))

        assert restored == model
        restored.validate()

    def test_from_dict_keeps_missing_lists_as_none(self):
        restored = ModelInfo.from_dict({"entities": [{"id": "1:10", "name": "Task"}]})

        assert restored.retired_index_uids is None
        assert restored.entities[0].properties is None
        assert restored.retired_relation_uids == []

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ValueError, match="expected a JSON object"):
            ModelInfo.from_dict([])

    def test_write_without_file_raises(self, model):
        with pytest.raises(ModelInfoError, match="not backed by a file"):
            model.write()
