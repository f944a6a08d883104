"""
Brief: Tests for dnsblock.trie.LabelTrie and its insert/lookup policies.

Inputs:
  - None

Outputs:
  - None
"""

from __future__ import annotations

from dnsblock.trie import (
    FIRST_TERMINAL_WINS,
    FULL_PATH_REQUIRED,
    PRUNE_DESCENDANTS,
    REJECT_WHEN_SPECIFIC,
    InsertStatus,
    LabelTrie,
)


def _block_trie():
    return LabelTrie(PRUNE_DESCENDANTS, FIRST_TERMINAL_WINS)


def _allow_trie():
    return LabelTrie(REJECT_WHEN_SPECIFIC, FULL_PATH_REQUIRED)


def test_insert_builds_reversed_label_path():
    """
    Brief: Inserted names are stored TLD first and share suffix nodes.

    Inputs:
      - None

    Outputs:
      - None; asserts node layout
    """
    t = _block_trie()
    t.insert("ads.example.com")
    t.insert("cdn.example.com")
    com = t.root.children["com"]
    example = com.children["example"]
    assert set(example.children) == {"ads", "cdn"}
    assert not com.is_terminal and not example.is_terminal
    assert example.children["ads"].is_terminal
    assert t.node_count() == 4
    assert len(t) == 2


def test_prune_descendants_discards_more_specific_rules():
    """
    Brief: A broader block rule removes every rule beneath it.

    Inputs:
      - None

    Outputs:
      - None; asserts pruned count and remaining rules
    """
    t = _block_trie()
    t.insert("a.ads.example")
    t.insert("b.c.ads.example")
    result = t.insert("ads.example", " # all ads")
    assert result.status is InsertStatus.ADDED
    assert result.pruned == 2
    assert [r.serialize() for r in t.rules()] == ["ads.example # all ads"]
    assert len(t) == 1
    assert t.root.children["example"].children["ads"].children == {}


def test_failed_insert_leaves_trie_untouched():
    """
    Brief: ALREADY_COVERED inserts create no nodes.

    Inputs:
      - None

    Outputs:
      - None; asserts node count unchanged and covering rule reported
    """
    t = _block_trie()
    t.insert("example.com", " # root")
    before = t.node_count()
    result = t.insert("deep.sub.example.com")
    assert result.status is InsertStatus.ALREADY_COVERED
    assert not result
    assert result.covering.serialize() == "example.com # root"
    assert t.node_count() == before


def test_block_reinsert_same_domain_is_already_covered():
    """
    Brief: Inserting an existing block rule again is redundant; the original
    annotation is kept.

    Inputs:
      - None

    Outputs:
      - None; asserts status and stored comment
    """
    t = _block_trie()
    t.insert("adserver.net", " # first")
    result = t.insert("adserver.net", " # second")
    assert result.status is InsertStatus.ALREADY_COVERED
    assert [r.serialize() for r in t.rules()] == ["adserver.net # first"]


def test_first_terminal_wins_lookup():
    """
    Brief: Block lookups return the shallowest terminal on the path.

    Inputs:
      - None

    Outputs:
      - None; asserts matched domains
    """
    t = _block_trie()
    t.insert("ads.example.com")
    assert str(t.lookup("x.y.ads.example.com").domain) == "ads.example.com"
    assert str(t.lookup("ADS.example.com.").domain) == "ads.example.com"
    assert t.lookup("example.com") is None
    assert t.lookup("cdn.example.com") is None
    assert t.lookup("com") is None


def test_full_path_required_lookup_matches_structural_nodes():
    """
    Brief: Allow lookups succeed for any indexed path, terminal or not.

    Inputs:
      - None

    Outputs:
      - None; asserts lookup results and rule attachment
    """
    t = _allow_trie()
    t.insert("www.wikipedia.org", " # dictionary")
    assert t.lookup("www.wikipedia.org").rule.serialize() == "www.wikipedia.org # dictionary"
    structural = t.lookup("wikipedia.org")
    assert structural is not None and structural.rule is None
    assert t.first_rule_under(structural).serialize() == "www.wikipedia.org # dictionary"
    assert t.lookup("org") is not None
    assert t.lookup("en.www.wikipedia.org") is None
    assert t.lookup("wikipedia.com") is None


def test_reject_when_specific_refuses_ancestor_and_duplicate():
    """
    Brief: Allow inserts fail above an existing rule, on a rule, or below one.

    Inputs:
      - None

    Outputs:
      - None; asserts statuses and rule count
    """
    t = _allow_trie()
    assert t.insert("www.wikipedia.org")
    above = t.insert("wikipedia.org")
    assert above.status is InsertStatus.ALREADY_COVERED
    assert str(above.covering.domain) == "www.wikipedia.org"
    assert t.insert("www.wikipedia.org").status is InsertStatus.ALREADY_COVERED
    assert t.insert("en.www.wikipedia.org").status is InsertStatus.ALREADY_COVERED
    assert t.insert("de.wikipedia.org")
    assert len(t) == 2


def test_rules_enumerate_branches_before_leaves():
    """
    Brief: rules() visits branch subtrees (sorted) before leaf rules (sorted).

    Inputs:
      - None

    Outputs:
      - None; asserts enumeration order
    """
    t = _block_trie()
    for name in (
        "adserver.net",
        "reclame.ads",
        "neptune.appads.com",
        "promotie.ads",
        "publicitate.ads",
    ):
        t.insert(name)
    assert [str(r.domain) for r in t.rules()] == [
        "promotie.ads",
        "publicitate.ads",
        "reclame.ads",
        "neptune.appads.com",
        "adserver.net",
    ]


def test_walk_is_preorder_and_sorted():
    """
    Brief: walk() yields every node, parents before children, labels sorted.

    Inputs:
      - None

    Outputs:
      - None; asserts visited paths
    """
    t = _block_trie()
    t.insert("b.example")
    t.insert("a.example")
    t.insert("z.other")
    assert [path for path, _ in t.walk()] == [
        ("example",),
        ("example", "a"),
        ("example", "b"),
        ("other",),
        ("other", "z"),
    ]


def test_clear_empties_trie():
    """
    Brief: clear() removes every node and resets the rule count.

    Inputs:
      - None

    Outputs:
      - None; asserts empty state
    """
    t = _block_trie()
    t.insert("a.example")
    t.clear()
    assert len(t) == 0
    assert list(t.rules()) == []
    assert t.lookup("a.example") is None
