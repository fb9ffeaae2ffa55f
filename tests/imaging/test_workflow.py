"""Tests for the image workflow graph."""

from chatforge.imaging import REALISM_SUFFIX, build_workflow, compose_prompt, extract_lora_name
from chatforge.imaging.workflow import DEFAULT_LORA, MAX_SEED, random_seed


class TestExtractLoraName:
    def test_first_word(self):
        assert extract_lora_name("miastyle, young woman, short dark hair") == "miastyle"

    def test_punctuation_stripped(self):
        assert extract_lora_name("  (anna_v2): freckles") == "anna_v2"

    def test_empty_instructions(self):
        assert extract_lora_name("") == DEFAULT_LORA
        assert extract_lora_name("   ") == DEFAULT_LORA
        assert extract_lora_name("!!! red hair") == DEFAULT_LORA


class TestComposePrompt:
    def test_instructions_then_request(self):
        prompt = compose_prompt("miastyle, young woman", " at the beach ")
        assert prompt == f"miastyle, young woman, at the beach{REALISM_SUFFIX}"

    def test_without_instructions(self):
        assert compose_prompt("", "at the beach") == f"at the beach{REALISM_SUFFIX}"


class TestBuildWorkflow:
    """Tests for the node graph."""

    def test_parameters_placed(self):
        workflow = build_workflow("miastyle", "a photo", seed=1234, timestamp_ms=42)

        assert workflow["67"]["inputs"]["text"] == "a photo"
        assert workflow["69"]["inputs"]["seed"] == 1234
        assert workflow["71"]["inputs"]["lora_name"] == "miastyle.safetensors"
        assert workflow["9"]["inputs"]["filename_prefix"] == "gen_42"

    def test_graph_references_resolve(self):
        """Every [node, index] input points at a node in the graph."""
        workflow = build_workflow("x", "y", seed=1)

        assert set(workflow) == {"9", "62", "63", "64", "65", "66", "67", "68", "69", "70", "71"}
        for node in workflow.values():
            for value in node["inputs"].values():
                if isinstance(value, list):
                    assert value[0] in workflow

    def test_output_chain(self):
        workflow = build_workflow("x", "y", seed=1)

        assert workflow["9"]["class_type"] == "SaveImage"
        assert workflow["9"]["inputs"]["images"] == ["65", 0]
        assert workflow["65"]["inputs"]["samples"] == ["69", 0]
        assert workflow["69"]["inputs"]["model"] == ["70", 0]
        assert workflow["70"]["inputs"]["model"] == ["71", 0]


def test_random_seed_in_range():
    for _ in range(100):
        assert 0 <= random_seed() < MAX_SEED
