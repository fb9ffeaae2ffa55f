"""ComfyUI workflow graph submitted to the image endpoint."""

import random
import string
import time
from typing import Any

# Appended to every prompt to steer the model towards photographic output
REALISM_SUFFIX = ", candid smartphone photo, natural light, slight grain, realistic skin texture"

DEFAULT_LORA = "default"
MAX_SEED = 2147483647

IMAGE_WIDTH = 1024
IMAGE_HEIGHT = 1360
SAMPLER_STEPS = 7
LORA_STRENGTH = 0.9


def extract_lora_name(image_prompt_instructions: str) -> str:
    """Style adapter named by the first word of a character's image instructions."""
    words = (image_prompt_instructions or "").split()
    if not words:
        return DEFAULT_LORA
    name = words[0].strip(string.punctuation)
    return name or DEFAULT_LORA


def compose_prompt(image_prompt_instructions: str, prompt: str) -> str:
    """Final prompt text: character style, the request, then the realism suffix."""
    instructions = (image_prompt_instructions or "").strip()
    if instructions:
        return f"{instructions}, {prompt.strip()}{REALISM_SUFFIX}"
    return f"{prompt.strip()}{REALISM_SUFFIX}"


def random_seed() -> int:
    return random.randrange(MAX_SEED)


def build_workflow(
    lora_name: str,
    prompt_text: str,
    seed: int,
    timestamp_ms: int | None = None,
) -> dict[str, Any]:
    """Build the fixed-shape graph with the given prompt, adapter and seed.

    Node ids are referenced by other nodes as ``[node_id, output_index]``.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    return {
        "9": {
            "inputs": {"filename_prefix": f"gen_{timestamp_ms}", "images": ["65", 0]},
            "class_type": "SaveImage",
        },
        "62": {
            "inputs": {
                "clip_name": "qwen_3_4b.safetensors",
                "type": "lumina2",
                "device": "default",
            },
            "class_type": "CLIPLoader",
        },
        "63": {
            "inputs": {"vae_name": "ae.safetensors"},
            "class_type": "VAELoader",
        },
        "64": {
            "inputs": {"conditioning": ["67", 0]},
            "class_type": "ConditioningZeroOut",
        },
        "65": {
            "inputs": {"samples": ["69", 0], "vae": ["63", 0]},
            "class_type": "VAEDecode",
        },
        "66": {
            "inputs": {
                "unet_name": "z_image_turbo_bf16.safetensors",
                "weight_dtype": "default",
            },
            "class_type": "UNETLoader",
        },
        "67": {
            "inputs": {"text": prompt_text, "clip": ["62", 0]},
            "class_type": "CLIPTextEncode",
        },
        "68": {
            "inputs": {"width": IMAGE_WIDTH, "height": IMAGE_HEIGHT, "batch_size": 1},
            "class_type": "EmptySD3LatentImage",
        },
        "69": {
            "inputs": {
                "seed": seed,
                "steps": SAMPLER_STEPS,
                "cfg": 1,
                "sampler_name": "res_multistep",
                "scheduler": "simple",
                "denoise": 1,
                "model": ["70", 0],
                "positive": ["67", 0],
                "negative": ["64", 0],
                "latent_image": ["68", 0],
            },
            "class_type": "KSampler",
        },
        "70": {
            "inputs": {"shift": 3, "model": ["71", 0]},
            "class_type": "ModelSamplingAuraFlow",
        },
        "71": {
            "inputs": {
                "lora_name": f"{lora_name}.safetensors",
                "strength_model": LORA_STRENGTH,
                "model": ["66", 0],
            },
            "class_type": "LoraLoaderModelOnly",
        },
    }
