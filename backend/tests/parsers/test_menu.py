"""
Tests for the menu parser and writer.
Raw inputs are built with MenuBuilder so reading is tested independently of writing.
"""
import io
import struct

import pytest

from gamedata.slots import Slot, SlotCatalog
from parsers.menu import (
    MenuParser, MenuWriter, MenuItem, MenuHeader, MenuProperty, PropertyTable,
    FormatError, MenuCorruptedError, NAME_SPACE_PLACEHOLDER, decode, encode
)
from tests.fixtures.menu_builder import MenuBuilder, encode_string, sample_menu


@pytest.fixture
def catalog():
    """Catalog with a host table for a few wear slots"""
    return SlotCatalog({
        Slot.wear: "_I_wear_del.menu",
        Slot.skirt: "_I_skirt_del.menu",
        Slot.bra: "_I_bra_del.menu",
        Slot.shoes: "_I_shoes_del.menu",
    })


@pytest.fixture
def sample_bytes():
    return sample_menu().build()


class TestMenuParser:
    """Test reading menu files"""

    def test_parse_header_fields(self, catalog, sample_bytes):
        parser = MenuParser(catalog=catalog)
        item = parser.parse_bytes(sample_bytes, file_name="dress001.menu")

        assert item.header.version == 1000
        assert item.header.path == "menu/test.txt"
        assert item.name == "Summer Dress"
        assert item.description == "A dress"
        assert item.category == Slot.wear
        assert item.category_name == "wear"
        assert item.file_name == "dress001.menu"
        assert parser.section_length == len(sample_menu().section())
        assert parser.reserved is None

    def test_parse_records_in_order(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)

        assert item.properties.keys() == [
            "name", "setumei", "category", "priority", "maskitem", "maskitem",
            "アイテム", "additem", "マテリアル変更", "icons",
        ]
        assert item.properties[7].values == ["dress001_wear.model", "wear"]

    def test_duplicate_keys_preserved(self, catalog):
        data = MenuBuilder().add("color", "red").add("color", "red").add("color", "blue").build()
        item = decode(data, catalog=catalog)

        assert item.properties.to_list() == [
            ("color", ["red"]), ("color", ["red"]), ("color", ["blue"])
        ]

    def test_derived_views(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)

        assert dict(item.masked_slots) == {"accHana": True, "skirt": True}
        assert dict(item.undressed_slots) == {Slot.skirt: True}

    def test_zero_count_terminates_section(self, catalog):
        builder = MenuBuilder().add("priority", "100")
        data = builder.build() + b'\x02' + encode_string("junk") + encode_string("value")
        item = decode(data, catalog=catalog)

        assert item.properties.to_list() == [("priority", ["100"])]

    def test_end_record_terminates_section(self, catalog):
        data = (MenuBuilder()
                .add("priority", "100")
                .add("end", "ignored", "values")
                .add("after", "end")
                .without_terminator()
                .build())
        item = decode(data, catalog=catalog)

        assert item.properties.to_list() == [("priority", ["100"])]

    def test_missing_terminator_at_eof(self, catalog):
        data = MenuBuilder().add("priority", "100").without_terminator().build()
        item = decode(data, catalog=catalog)

        assert item.properties.to_list() == [("priority", ["100"])]

    def test_reserved_int_layout(self, catalog):
        data = sample_menu().with_reserved(0).build()
        parser = MenuParser(catalog=catalog)
        item = parser.parse_bytes(data)

        assert parser.reserved == 0
        assert item.properties == decode(sample_menu().build(), catalog=catalog).properties

    def test_key_only_record_populates_nothing(self, catalog):
        data = MenuBuilder().add("maskitem").add("アイテム").build()
        item = decode(data, catalog=catalog)

        assert item.properties.to_list() == [("maskitem", []), ("アイテム", [])]
        assert dict(item.masked_slots) == {}
        assert dict(item.undressed_slots) == {}

    def test_invalid_header(self, catalog):
        data = MenuBuilder(tag="CM3D2_MODEL").build()
        with pytest.raises(FormatError):
            decode(data, catalog=catalog)

    def test_empty_buffer_is_format_error(self, catalog):
        with pytest.raises(FormatError):
            decode(b'', catalog=catalog)

    def test_truncated_record(self, catalog):
        data = MenuBuilder().add("priority", "100").build()
        with pytest.raises(MenuCorruptedError):
            decode(data[:-4], catalog=catalog)

    def test_unknown_category_is_recoverable(self, catalog):
        data = MenuBuilder(category="not_a_slot").add("category", "not_a_slot").build()
        parser = MenuParser(catalog=catalog)
        item = parser.parse_bytes(data)

        assert item.category is None
        assert item.category_error is not None
        assert item.category_error.name == "not_a_slot"
        assert len(parser.recovery_errors) == 1
        assert item.properties.to_list() == [("category", ["not_a_slot"])]

    def test_category_case_insensitive(self, catalog):
        data = MenuBuilder(category="Skirt").add("category", "SKIRT").build()
        item = decode(data, catalog=catalog)

        assert item.category == Slot.skirt
        assert item.category_name == "SKIRT"
        assert not item.category_changed
        assert encode(item) == data

    def test_long_string_prefix(self, catalog):
        long_value = "x" * 300
        data = MenuBuilder().add("setumei", long_value).build()
        item = decode(data, catalog=catalog)

        assert item.description == long_value

    def test_read_file(self, tmp_path, catalog, sample_bytes):
        path = tmp_path / "dress001.menu"
        path.write_bytes(sample_bytes)

        item = MenuParser(catalog=catalog).read(str(path))
        assert item.file_name == "dress001.menu"
        assert item.name == "Summer Dress"

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MenuParser().read(str(tmp_path / "missing.menu"))


class TestMenuWriter:
    """Test writing menu files"""

    def test_round_trip_without_edits(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        original = item.properties.copy()

        again = decode(encode(item), catalog=catalog)
        assert again.properties == original
        assert again.name == item.name
        assert again.header.version == 1000

    def test_round_trip_is_byte_identical(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        assert encode(item) == sample_bytes

    def test_terminator_added_when_absent(self, catalog):
        data = MenuBuilder().add("priority", "100").without_terminator().build()
        item = decode(data, catalog=catalog)

        output = encode(item)
        assert output.endswith(b'\x00')
        assert decode(output, catalog=catalog).properties.to_list() == [("priority", ["100"])]

    def test_section_length_prefix(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        output = encode(item)

        parser = MenuParser(catalog=catalog)
        parser.parse_bytes(output)
        section_length = len(sample_menu().section())
        assert parser.section_length == section_length
        assert struct.unpack('<i', output[-section_length - 4:-section_length])[0] == section_length

    def test_unknown_records_keep_order(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.masked_slots["hairF"] = True
        item.masked_slots["skirt"] = False
        item.undressed_slots[Slot.bra] = True
        item.category = Slot.onepiece

        output = decode(encode(item), catalog=catalog)
        unknown = [k for k in output.properties.keys() if k in ("priority", "additem", "マテリアル変更", "icons")]
        assert unknown == ["priority", "additem", "マテリアル変更", "icons"]

    def test_mask_insertion_into_empty_table(self, catalog):
        item = MenuItem(MenuHeader(category="wear"), PropertyTable(), catalog=catalog)
        item.masked_slots["mayuge"] = True

        output = decode(encode(item), catalog=catalog)
        assert output.properties.to_list() == [("maskitem", ["mayuge"])]

    def test_mask_insertion_after_last_mask(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.masked_slots["hairF"] = True
        item.masked_slots["glove"] = True

        keys = decode(encode(item), catalog=catalog).properties.to_list()
        assert keys[4:8] == [
            ("maskitem", ["accHana"]), ("maskitem", ["skirt"]),
            ("maskitem", ["hairF"]), ("maskitem", ["glove"]),
        ]

    def test_existing_mask_not_duplicated(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.masked_slots["skirt"] = True

        output = decode(encode(item), catalog=catalog)
        assert len(output.properties.find_all("maskitem")) == 2

    def test_mask_removed_when_unset(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.set_masked("accHana", False)

        output = decode(encode(item), catalog=catalog)
        assert [p.values for p in output.properties.find_all("maskitem")] == [["skirt"]]

    def test_aggregate_expands_to_two_records(self, catalog):
        item = MenuItem(MenuHeader(category="wear"), PropertyTable(), catalog=catalog)
        item.masked_slots["chikubi"] = True

        output = decode(encode(item), catalog=catalog)
        assert output.properties.to_list() == [
            ("maskitem", ["accNipL"]), ("maskitem", ["accNipR"])
        ]
        assert output.is_masked("chikubi")

    def test_aggregate_name_is_case_insensitive(self, catalog):
        item = MenuItem(MenuHeader(category="wear"), PropertyTable(), catalog=catalog)
        item.masked_slots["Chikubi"] = True

        output = decode(encode(item), catalog=catalog)
        assert output.properties.to_list() == [
            ("maskitem", ["accNipL"]), ("maskitem", ["accNipR"])
        ]
        assert item.is_masked("CHIKUBI")

    def test_aggregate_unset_with_other_spelling(self, catalog):
        data = MenuBuilder().add("maskitem", "accNipL").add("maskitem", "accNipR").build()
        item = decode(data, catalog=catalog)

        item.set_masked("Chikubi", False)
        assert not item.is_masked("chikubi")
        assert decode(encode(item), catalog=catalog).properties.to_list() == []

    def test_aggregate_parts_dropped_when_unset(self, catalog):
        data = (MenuBuilder()
                .add("maskitem", "accNipL")
                .add("maskitem", "accNipR")
                .add("maskitem", "skirt")
                .build())
        item = decode(data, catalog=catalog)
        assert item.is_masked("chikubi")

        item.masked_slots["chikubi"] = False
        output = decode(encode(item), catalog=catalog)
        assert output.properties.to_list() == [("maskitem", ["skirt"])]

    def test_aggregate_parts_survive_round_trip(self, catalog):
        data = MenuBuilder().add("maskitem", "accNipL").add("maskitem", "accNipR").build()
        item = decode(data, catalog=catalog)

        assert encode(item) == data

    def test_undress_insertion_after_last_item(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.undressed_slots[Slot.bra] = True

        table = decode(encode(item), catalog=catalog).properties.to_list()
        assert table[6:8] == [("アイテム", ["_I_skirt_del.menu"]), ("アイテム", ["_I_bra_del.menu"])]

    def test_undress_insertion_at_end_without_items(self, catalog):
        data = MenuBuilder().add("priority", "100").add("icons", "x.tex").build()
        item = decode(data, catalog=catalog)
        item.set_undressed("shoes")

        table = decode(encode(item), catalog=catalog).properties.to_list()
        assert table[-1] == ("アイテム", ["_I_shoes_del.menu"])

    def test_undress_filtering(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.undressed_slots[Slot.skirt] = False

        output = decode(encode(item), catalog=catalog)
        assert output.properties.find("アイテム") is None
        assert Slot.skirt not in output.undressed_slots

    def test_fallback_default_item(self):
        item = MenuItem(MenuHeader(category="wear"))
        item.set_undressed(Slot.nose)

        output = decode(encode(item))
        assert output.properties.to_list() == [("アイテム", ["nose_del_i_.menu"])]
        assert output.is_undressed(Slot.nose)

    def test_own_slot_default_item_dropped(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.category = Slot.skirt

        output = decode(encode(item), catalog=catalog)
        assert output.properties.find("アイテム") is None

    def test_unrelated_item_records_kept(self, catalog):
        data = MenuBuilder().add("アイテム", "some_other_item.menu").build()
        item = decode(data, catalog=catalog)

        output = decode(encode(item), catalog=catalog)
        assert output.properties.to_list() == [("アイテム", ["some_other_item.menu"])]

    def test_header_fields_rewritten(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.name = "Winter Dress"
        item.description = "Warm"
        item.category = "onepiece"

        output = decode(encode(item), catalog=catalog)
        assert output.header.name == "Winter Dress"
        assert output.header.description == "Warm"
        assert output.header.category == "onepiece"
        assert output.header.path == "menu/test.txt"
        assert output.properties.first_value("setumei") == "Warm"
        assert output.properties.first_value("category") == "onepiece"

    def test_name_spaces_replaced(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.name = "Blue Summer Dress"

        output = decode(encode(item), catalog=catalog)
        assert output.properties.first_value("name") == f"Blue{NAME_SPACE_PLACEHOLDER}Summer{NAME_SPACE_PLACEHOLDER}Dress"
        assert " " not in output.properties.first_value("name")
        assert NAME_SPACE_PLACEHOLDER == "\u2008"

    def test_rename_propagation_applies_once(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.category = Slot.onepiece

        first = decode(encode(item), catalog=catalog)
        assert first.properties.find("additem").values == ["dress001_wear.model", "onepiece"]
        assert first.properties.find("マテリアル変更").values == ["onepiece", "0", "dress001.mate"]
        assert item.category_name == "onepiece"

        second_bytes = encode(item)
        second = decode(second_bytes, catalog=catalog)
        assert second.properties.find("additem").values == ["dress001_wear.model", "onepiece"]
        assert second_bytes == encode(item)

    def test_rename_does_not_touch_new_values(self, catalog):
        data = (MenuBuilder(category="wear")
                .add("category", "wear")
                .add("additem", "a.model", "skirt")
                .build())
        item = decode(data, catalog=catalog)
        item.category = Slot.skirt
        encode(item)

        # the previous category is now skirt, so skirt values follow the next change
        item.category = Slot.bra
        output = decode(encode(item), catalog=catalog)
        assert output.properties.find("additem").values == ["a.model", "bra"]

    @pytest.mark.parametrize("category", ["custom", "Custom"])
    def test_unresolved_category_written_back(self, catalog, category):
        data = (MenuBuilder(category=category)
                .add("category", category)
                .add("x", category)
                .build())
        item = decode(data, catalog=catalog)

        assert item.category is None
        assert encode(item) == data
        output = decode(encode(item), catalog=catalog)
        assert output.header.category == category
        assert output.properties.to_list() == [("category", [category]), ("x", [category])]

    def test_unchanged_category_keeps_value_spelling(self, catalog):
        data = (MenuBuilder(category="wear")
                .add("category", "wear")
                .add("color", "WEAR")
                .build())
        item = decode(data, catalog=catalog)

        output = decode(encode(item), catalog=catalog)
        assert output.properties.find("color").values == ["WEAR"]
        assert encode(item) == data

    def test_category_set_to_same_slot_is_not_a_rename(self, catalog):
        data = MenuBuilder(category="Wear").add("category", "Wear").add("color", "WEAR").build()
        item = decode(data, catalog=catalog)
        item.category = "wear"

        assert not item.category_changed
        assert encode(item) == data

    def test_rename_from_mixed_case(self, catalog):
        data = MenuBuilder(category="Wear").add("category", "Wear").add("color", "WEAR").build()
        item = decode(data, catalog=catalog)
        item.category = Slot.skirt

        output = decode(encode(item), catalog=catalog)
        assert output.header.category == "skirt"
        assert output.properties.to_list() == [("category", ["skirt"]), ("color", ["skirt"])]

    def test_key_only_records_pass_through(self, catalog):
        data = MenuBuilder().add("maskitem").add("アイテム").add("name").build()
        item = decode(data, catalog=catalog)

        assert encode(item) == data

    def test_end_record_suppresses_terminator(self, catalog):
        item = MenuItem(MenuHeader(category="wear"), catalog=catalog)
        item.properties.add("priority", "100")
        item.properties.add("end")

        output = encode(item)
        assert output.endswith(b'\x01' + encode_string("end"))

    def test_write_to_file(self, tmp_path, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.name = "Exported"
        path = tmp_path / "out.menu"

        item.write(str(path))
        assert MenuParser(catalog=catalog).read(str(path)).name == "Exported"

    def test_write_to_missing_directory_raises(self, tmp_path, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        with pytest.raises(OSError):
            MenuWriter().write(str(tmp_path / "missing" / "out.menu"), item)

    def test_save_to_stream(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        stream = io.BytesIO()
        MenuWriter().save(stream, item)
        assert stream.getvalue() == sample_bytes


class TestMenuItemViews:
    """Test the snapshot and edit views"""

    def test_snapshot_is_read_only(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        with pytest.raises(TypeError):
            item.loaded_masked_slots["hairF"] = True

    def test_edits_do_not_touch_snapshot_or_records(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.masked_slots["skirt"] = False
        item.masked_slots["hairF"] = True

        assert item.loaded_masked_slots["skirt"] is True
        assert "hairF" not in item.loaded_masked_slots
        assert item.is_masked("hairF")
        assert not item.is_masked("skirt")
        assert len(item.properties.find_all("maskitem")) == 2

    def test_pending_edits(self, catalog, sample_bytes):
        item = decode(sample_bytes, catalog=catalog)
        item.set_masked("skirt", True)
        item.set_masked("hairF", True)
        item.set_undressed(Slot.skirt, False)

        assert item.pending_edits() == {
            'masked': {"hairF": True},
            'undressed': {Slot.skirt: False},
        }
        item.reset_edits()
        assert item.pending_edits() == {'masked': {}, 'undressed': {}}
        assert item.is_undressed(Slot.skirt)

    def test_category_setter_parses_names(self, catalog):
        item = MenuItem(MenuHeader(category="wear"), catalog=catalog)
        item.category = "ONEPIECE"
        assert item.category == Slot.onepiece
        assert item.new_category_name == "onepiece"


class TestPropertyTable:
    """Test the record table helpers"""

    def test_last_index(self):
        table = PropertyTable.from_pairs([("a", ["1"]), ("b", ["2"]), ("a", ["3"])])
        assert table.last_index("a") == 2
        assert table.last_index("c") == -1

    def test_copy_is_deep(self):
        table = PropertyTable([MenuProperty("a", ["1"])])
        copied = table.copy()
        copied[0].values[0] = "2"
        assert table[0].values == ["1"]

    def test_has_value(self):
        table = PropertyTable.from_pairs([("アイテム", ["_I_Wear_Del.menu"]), ("maskitem", [])])
        assert table.has_value("アイテム", "_i_wear_del.menu", ignore_case=True)
        assert not table.has_value("アイテム", "_i_wear_del.menu")
        assert not table.has_value("maskitem", "")
