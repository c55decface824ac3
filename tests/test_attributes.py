"""
Test suite for member attributes and type descriptors.

Attributes travel through the tree IR as 'key=value|...' strings; the
descriptor helpers decide which load/store family and stack width a
value has.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from bytetree import descriptors as d
from bytetree.attributes import Attributes, Kind
from bytetree.opcodes import Op


class TestAttributesText:
    """Parsing and printing the pipe-delimited form."""

    def test_parse_all_keys(self):
        """Test every key is read, kind as an enum member."""
        attributes = Attributes.parse("owner=App|name=bar|descriptor=()I|kind=method")
        assert attributes == Attributes(owner="App", name="bar", descriptor="()I", kind=Kind.METHOD)

    def test_fixed_key_order(self):
        """Test keys are printed in the fixed order and absent keys are omitted."""
        attributes = Attributes(kind=Kind.FIELD, descriptor="I", owner="A")
        assert str(attributes) == "owner=A|descriptor=I|kind=field"

    def test_round_trip(self):
        """Test parse(str(a)) == a."""
        attributes = Attributes.member("java/lang/Object", "<init>", "()V", Kind.INSTANCE)
        assert Attributes.parse(str(attributes)) == attributes

    def test_empty_text(self):
        """Test an empty scope gives empty attributes."""
        assert Attributes.parse("") == Attributes()

    @pytest.mark.parametrize("text", ["owner", "colour=red", "kind=weird", "name=a|descriptor"])
    def test_malformed(self, text):
        """Test malformed pairs, unknown keys and unknown kinds are rejected."""
        with pytest.raises(ValueError):
            Attributes.parse(text)

    def test_require_missing(self):
        """Test a missing mandatory key is an error naming the key."""
        with pytest.raises(ValueError, match="descriptor"):
            Attributes(owner="A", name="f").require("descriptor")

    def test_with_helpers(self):
        """Test the with_* helpers return updated copies."""
        base = Attributes(owner="A")
        assert base.with_name("f").with_descriptor("()V").with_kind(Kind.STATIC) == Attributes(
            owner="A", name="f", descriptor="()V", kind=Kind.STATIC
        )
        assert base == Attributes(owner="A")


class TestDescriptors:
    """Method descriptor parsing and opcode families."""

    def test_argument_types(self):
        """Test arguments are split in declaration order."""
        assert d.argument_types("(IJLjava/lang/String;[D)V") == ["I", "J", "Ljava/lang/String;", "[D"]
        assert d.argument_types("()V") == []

    def test_return_type(self):
        """Test the return type follows the closing parenthesis."""
        assert d.return_type("(I)[Ljava/lang/Object;") == "[Ljava/lang/Object;"
        assert d.return_type("()V") == "V"

    @pytest.mark.parametrize("text", ["I", "(I", "(Q)V", "(Ljava/lang/String)V"])
    def test_malformed_method_descriptor(self, text):
        """Test malformed method descriptors raise ValueError."""
        with pytest.raises(ValueError):
            d.argument_types(text)

    @pytest.mark.parametrize("desc,load,store", [
        ("I", Op.ILOAD, Op.ISTORE),
        ("Z", Op.ILOAD, Op.ISTORE),
        ("C", Op.ILOAD, Op.ISTORE),
        ("J", Op.LLOAD, Op.LSTORE),
        ("F", Op.FLOAD, Op.FSTORE),
        ("D", Op.DLOAD, Op.DSTORE),
        ("Ljava/util/List;", Op.ALOAD, Op.ASTORE),
        ("[I", Op.ALOAD, Op.ASTORE),
    ])
    def test_load_store_families(self, desc, load, store):
        """Test every valid type maps to a load and a store opcode."""
        assert d.load_opcode(desc) == load
        assert d.store_opcode(desc) == store

    def test_wide(self):
        """Test only long and double take two slots."""
        assert d.is_wide("J") and d.is_wide("D")
        assert not d.is_wide("I") and not d.is_wide("Ljava/lang/Long;")

    def test_array_of(self):
        """Test array descriptors from primitive and class elements."""
        assert d.array_of("I") == "[I"
        assert d.array_of("java/lang/Object") == "[Ljava/lang/Object;"
        assert d.array_of("[I") == "[[I"

    def test_validity(self):
        """Test single field descriptors are recognized."""
        assert d.is_valid("Ljava/lang/String;")
        assert d.is_valid("[[J")
        assert not d.is_valid("II")
        assert not d.is_valid("")
