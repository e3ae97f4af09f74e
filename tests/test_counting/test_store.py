import itertools
import random

import pytest

from chatcount.counting.store import (
    AGGREGATE_GROUP,
    ChatMessage,
    GroupKind,
    WordCountStore,
)


@pytest.fixture
def store() -> WordCountStore:
    return WordCountStore()


def _snapshot(store: WordCountStore) -> dict[str, dict[str, int]]:
    return {group.name: dict(group.counts) for group in store.groups()}


class TestBuild:
    def test_counts_words_for_group_and_all(self, store: WordCountStore):
        store.build("Hello, world!", "alice", True)
        store.build("hello world", "bob", True)

        assert store.word_count("alice", "hello") == 1
        assert store.word_count("bob", "world") == 1
        assert store.word_count(AGGREGATE_GROUP, "hello") == 2
        assert store.word_count(AGGREGATE_GROUP, "world") == 2

    def test_url_is_stripped(self, store: WordCountStore):
        store.build("http://example.com/x cat", "carol", True)

        group = store.get_group("carol")
        assert group is not None
        assert dict(group.counts) == {"cat": 1}

    def test_excluded_group_does_not_reach_all(self, store: WordCountStore):
        store.build("beep boop", "robot", False)

        assert store.word_count("robot", "beep") == 1
        assert not store.group_exists(AGGREGATE_GROUP)

    def test_empty_text_is_a_no_op(self, store: WordCountStore):
        store.build("", "alice", True)
        store.build("?!. ,", "alice", True)

        assert not store.group_exists("alice")
        assert len(store) == 0

    def test_include_in_all_fixed_at_creation(self, store: WordCountStore):
        store.build("first", "alice", True)
        store.build("second", "alice", False)

        group = store.get_group("alice")
        assert group is not None
        assert group.include_in_all is True
        assert store.word_count(AGGREGATE_GROUP, "second") == 1

    def test_excluded_flag_fixed_at_creation(self, store: WordCountStore):
        store.build("beep", "robot", False)
        store.build("boop", "robot", True)

        assert store.word_count("robot", "boop") == 1
        assert not store.group_exists(AGGREGATE_GROUP)

    def test_aggregate_group_kind(self, store: WordCountStore):
        store.build("hi", "alice", True)

        aggregate = store.get_group(AGGREGATE_GROUP)
        assert aggregate is not None
        assert aggregate.kind is GroupKind.AGGREGATE
        assert aggregate.include_in_all is False
        assert aggregate.display_name == "everyone"
        assert store.get_group("alice").kind is GroupKind.USER

    def test_author_named_all_reaches_aggregate(self, store: WordCountStore):
        store.build("hi", AGGREGATE_GROUP, True)

        assert store.word_count(AGGREGATE_GROUP, "hi") == 1

    def test_author_named_all_keeps_aggregate_consistent(self, store: WordCountStore):
        store.build("hi", "alice", True)
        store.build("hi", AGGREGATE_GROUP, True)

        contributing = list(store.contributing_groups())
        assert {group.kind for group in contributing} == {GroupKind.USER}
        assert sum(group.counts["hi"] for group in contributing) == 2
        assert store.word_count(AGGREGATE_GROUP, "hi") == 2
        assert store.get_group(AGGREGATE_GROUP).kind is GroupKind.AGGREGATE

    def test_word_count_unknown(self, store: WordCountStore):
        store.build("hi", "alice", True)

        assert store.word_count("alice", "bye") is None
        assert store.word_count("nobody", "hi") is None


class TestBuildMessage:
    def test_bot_message_stays_out_of_all(self, store: WordCountStore):
        counted = store.build_message(
            ChatMessage(content="I am a bot", author_name="helper", author_is_bot=True)
        )

        assert counted is True
        assert store.word_count("helper", "bot") == 1
        assert store.word_count(AGGREGATE_GROUP, "bot") is None

    def test_command_message_is_ignored(self, store: WordCountStore):
        counted = store.build_message(ChatMessage(content="!count foo", author_name="alice"))

        assert counted is False
        assert not store.group_exists("alice")

    def test_custom_command_prefix(self):
        store = WordCountStore(command_prefix="?")

        store.build_message(ChatMessage(content="?count foo", author_name="alice"))
        store.build_message(ChatMessage(content="!count foo", author_name="bob"))

        assert not store.group_exists("alice")
        assert store.word_count("bob", "foo") == 1


class TestInvariants:
    MESSAGES = [
        ChatMessage("the cat sat", "alice"),
        ChatMessage("The dog, the cat.", "bob"),
        ChatMessage("beep the boop", "robot", author_is_bot=True),
        ChatMessage("cat cat CAT", "carol"),
        ChatMessage("https://www.example.com/a the end", "alice"),
        ChatMessage("!count cat", "bob"),
    ]

    def test_aggregate_equals_sum_of_contributing_groups(self, store: WordCountStore):
        for message in self.MESSAGES:
            store.build_message(message)

        aggregate = store.get_group(AGGREGATE_GROUP)
        assert aggregate is not None
        for word, count in aggregate.counts.items():
            expected = sum(group.counts[word] for group in store.contributing_groups())
            assert count == expected

    def test_counts_never_decrease(self, store: WordCountStore):
        previous: dict[str, dict[str, int]] = {}
        for message in self.MESSAGES:
            store.build_message(message)
            current = _snapshot(store)
            for name, counts in previous.items():
                for word, count in counts.items():
                    assert current[name][word] >= count
            previous = current

    def test_order_does_not_matter(self):
        expected = WordCountStore()
        for message in self.MESSAGES:
            expected.build_message(message)

        rng = random.Random(7)
        for _ in range(5):
            shuffled = self.MESSAGES[:]
            rng.shuffle(shuffled)
            store = WordCountStore()
            for message in shuffled:
                store.build_message(message)
            assert _snapshot(store) == _snapshot(expected)

    def test_reversed_order_matches(self):
        forward = WordCountStore()
        backward = WordCountStore()
        for message in self.MESSAGES:
            forward.build_message(message)
        for message in reversed(self.MESSAGES):
            backward.build_message(message)

        assert _snapshot(forward) == _snapshot(backward)

    def test_groups_snapshot_survives_mutation(self, store: WordCountStore):
        store.build("a", "alice", True)
        groups = store.groups()
        store.build("b", "bob", True)

        assert [group.name for group in itertools.islice(groups, 10)] == ["alice", "all"]
