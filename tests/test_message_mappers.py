import itertools
import unittest

from chat_relay.message_mappers import (
    PAYLOAD_BUILDERS,
    build_bedrock_payload,
    build_openai_payload,
    build_payload,
    cache_prefix_flags,
)
from chat_relay.model_registry import PROVIDER_PROFILES, ProviderProfile
from chat_relay.schemas import ChatMessage, ChatRequest

EPHEMERAL = {"type": "ephemeral"}


def _request(*messages: tuple[str, str, bool], **kwargs: object) -> ChatRequest:
    return ChatRequest(
        messages=[
            {"role": role, "content": content, "cacheable": cacheable}
            for role, content, cacheable in messages
        ],
        **kwargs,
    )


class CachePrefixTests(unittest.TestCase):
    def test_annotations_stop_at_first_non_cacheable_message(self) -> None:
        request = _request(
            ("user", "hi", True),
            ("assistant", "hello", True),
            ("user", "bye", False),
        )

        self.assertEqual(cache_prefix_flags(request.messages), [True, True, False])

    def test_cacheable_message_after_gap_is_not_annotated(self) -> None:
        request = _request(
            ("user", "a", True),
            ("assistant", "b", False),
            ("user", "c", True),
        )

        self.assertEqual(cache_prefix_flags(request.messages), [True, False, False])

    def test_annotations_always_form_a_prefix(self) -> None:
        for length in range(0, 6):
            for pattern in itertools.product([True, False], repeat=length):
                messages = [
                    ChatMessage(role="user", content=str(index), cacheable=cacheable)
                    for index, cacheable in enumerate(pattern)
                ]
                flags = cache_prefix_flags(messages)
                with self.subTest(pattern=pattern):
                    self.assertEqual(len(flags), length)
                    if False in flags:
                        first_plain = flags.index(False)
                        self.assertFalse(any(flags[first_plain:]))
                    for flag, cacheable in zip(flags, pattern):
                        if flag:
                            self.assertTrue(cacheable)

    def test_empty_conversation(self) -> None:
        self.assertEqual(cache_prefix_flags([]), [])


class BedrockPayloadTests(unittest.TestCase):
    def setUp(self) -> None:
        self.profile = PROVIDER_PROFILES["bedrock"]

    def test_example_conversation_annotates_first_two_messages(self) -> None:
        request = _request(
            ("user", "hi", True),
            ("assistant", "hello", True),
            ("user", "bye", False),
        )

        payload = build_bedrock_payload(request, self.profile)

        self.assertEqual(payload["model_id"], self.profile.model)
        self.assertEqual(
            payload["body"]["messages"],
            [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": "hi", "cache_control": EPHEMERAL}],
                },
                {
                    "role": "assistant",
                    "content": [{"type": "text", "text": "hello", "cache_control": EPHEMERAL}],
                },
                {"role": "user", "content": "bye"},
            ],
        )

    def test_defaults_and_anthropic_version(self) -> None:
        body = build_bedrock_payload(_request(("user", "hi", False)), self.profile)["body"]

        self.assertEqual(body["anthropic_version"], "bedrock-2023-05-31")
        self.assertEqual(body["max_tokens"], 2048)
        self.assertEqual(body["temperature"], 0.0)
        self.assertNotIn("system", body)

    def test_system_prompt_is_cached_when_profile_supports_it(self) -> None:
        request = _request(("user", "hi", False), system="Be brief.")

        body = build_bedrock_payload(request, self.profile)["body"]

        self.assertEqual(
            body["system"],
            [{"type": "text", "text": "Be brief.", "cache_control": EPHEMERAL}],
        )

    def test_system_prompt_without_system_cache_support(self) -> None:
        profile = ProviderProfile(provider="bedrock", model="m", max_requests=1)
        request = _request(("user", "hi", True), system="Be brief.")

        body = build_bedrock_payload(request, profile)["body"]

        self.assertEqual(body["system"], [{"type": "text", "text": "Be brief."}])

    def test_system_role_messages_move_to_system_blocks_in_order(self) -> None:
        request = _request(
            ("system", "rules", True),
            ("user", "hi", True),
            ("system", "late note", False),
            ("user", "bye", True),
            system="Be brief.",
        )

        body = build_bedrock_payload(request, self.profile)["body"]

        self.assertEqual(
            body["system"],
            [
                {"type": "text", "text": "Be brief.", "cache_control": EPHEMERAL},
                {"type": "text", "text": "rules", "cache_control": EPHEMERAL},
                {"type": "text", "text": "late note"},
            ],
        )
        self.assertEqual(
            body["messages"],
            [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": "hi", "cache_control": EPHEMERAL}],
                },
                {"role": "user", "content": "bye"},
            ],
        )

    def test_transformation_is_idempotent(self) -> None:
        request = _request(("user", "hi", True), ("assistant", "ok", False), system="s")

        first = build_bedrock_payload(request, self.profile)
        second = build_bedrock_payload(request, self.profile)

        self.assertEqual(first, second)
        first["body"]["messages"][0]["content"][0]["cache_control"]["type"] = "mutated"
        self.assertEqual(
            build_bedrock_payload(request, self.profile)["body"]["messages"][0]["content"][0][
                "cache_control"
            ],
            EPHEMERAL,
        )


class OpenAIPayloadTests(unittest.TestCase):
    def test_cache_annotations_are_stripped_and_system_leads(self) -> None:
        profile = PROVIDER_PROFILES["openai"]
        request = _request(
            ("user", "hi", True),
            ("assistant", "hello", True),
            ("user", "bye", False),
            system="Be brief.",
            max_tokens=64,
            temperature=0.5,
        )

        payload = build_openai_payload(request, profile)

        self.assertEqual(
            payload,
            {
                "model": profile.model,
                "messages": [
                    {"role": "system", "content": "Be brief."},
                    {"role": "user", "content": "hi"},
                    {"role": "assistant", "content": "hello"},
                    {"role": "user", "content": "bye"},
                ],
                "max_tokens": 64,
                "temperature": 0.5,
            },
        )


class PayloadTableTests(unittest.TestCase):
    def test_every_profile_has_a_builder(self) -> None:
        self.assertEqual(set(PAYLOAD_BUILDERS), set(PROVIDER_PROFILES))

    def test_build_payload_dispatches_on_provider(self) -> None:
        request = _request(("user", "hi", True))

        self.assertIn("body", build_payload(request, PROVIDER_PROFILES["bedrock"]))
        self.assertIn("messages", build_payload(request, PROVIDER_PROFILES["openai"]))

    def test_build_payload_rejects_unknown_provider(self) -> None:
        profile = ProviderProfile(provider="mystery", model="m", max_requests=1)  # type: ignore[arg-type]

        with self.assertRaisesRegex(RuntimeError, "Unsupported provider: mystery"):
            build_payload(_request(("user", "hi", False)), profile)


if __name__ == "__main__":
    unittest.main()
