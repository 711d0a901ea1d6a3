"""
AI gateway (OpenAI-compatible chat completions) for captions, title
rewrites and Pinterest image generation.
"""
from __future__ import annotations

import json
import logging
import random
import re
from typing import Any, Dict, List, Optional, Union

from crawler.infra.http import FetchError, HttpFetcher, response_json
from miner.errors import ConfigurationError, MalformedPayloadError, for_status
from miner.settings import DEFAULT_AI_GATEWAY_URL
from utils.security import is_configured_key, redact_secrets

logger = logging.getLogger(__name__)

TEXT_MODEL = "google/gemini-2.5-flash"
IMAGE_MODEL = "google/gemini-2.5-flash-image-preview"

CAPTION_SYSTEM_PROMPT = (
    "Você é um especialista em marketing de afiliados e criação de conteúdo viral para redes sociais. "
    "Responda apenas com o texto solicitado, sem explicações."
)

SCENE_PROMPTS = [
    "fashion photoshoot in a minimalist studio with soft natural lighting, professional model wearing the outfit, aesthetic pinterest style, high quality editorial photo",
    "street style photography in Paris, elegant urban background with cafe, model wearing the clothing, golden hour lighting, pinterest aesthetic",
    "cozy bedroom flat lay with the clothing item beautifully arranged, dried flowers, coffee cup, aesthetic instagram style",
    "outdoor lifestyle photo in a beautiful garden, model wearing the outfit, soft bokeh background, pinterest viral style",
    "clean white marble background product photography, the clothing item elegantly displayed, luxury aesthetic, high end fashion",
    "beach sunset photoshoot, model wearing the outfit, warm golden tones, vacation vibes, pinterest travel aesthetic",
    "modern apartment interior, model casually styled wearing the clothing, natural window light, lifestyle photography",
    "autumn fashion shoot in a park with fall foliage, model wearing the outfit, warm cozy aesthetic, pinterest style",
    "rooftop photoshoot at golden hour, city skyline background, model in the outfit, editorial fashion style",
    "boutique store setting, elegant mannequin display, soft ambient lighting, luxury fashion aesthetic",
]

PLATFORM_INSTRUCTIONS = {
    "facebook": (
        "Para Facebook Reels:\n"
        "- Use emojis relevantes mas não em excesso\n"
        "- Inclua uma chamada para ação clara\n"
        "- Mencione o benefício principal do produto\n"
        "- Use hashtags populares no final (3-5 hashtags)\n"
        "- Tom mais conversacional e direto"
    ),
    "pinterest": (
        "Para Pinterest:\n"
        "- Use palavras-chave relevantes naturalmente\n"
        "- Inclua emojis para destaque visual\n"
        "- Foque nos benefícios e uso do produto\n"
        "- Hashtags no final (3-5 hashtags relevantes)\n"
        "- Tom inspiracional e aspiracional"
    ),
}


def caption_prompt(product_title: str, video_title: Optional[str], platform: str) -> str:
    instructions = PLATFORM_INSTRUCTIONS.get(platform, PLATFORM_INSTRUCTIONS["pinterest"])
    shown = f'O vídeo mostra: "{video_title}"\n' if video_title else ""
    return (
        f'Crie uma legenda viral para um vídeo de afiliado sobre o produto: "{product_title}"\n'
        f"{shown}{instructions}\n\n"
        "IMPORTANTE:\n"
        "- A legenda deve ser em português brasileiro\n"
        "- Máximo 200 caracteres antes das hashtags\n"
        "- Gere interesse e curiosidade\n"
        '- Inclua CTA como "Link na bio" ou "Confira o link"\n\n'
        "Responda APENAS com a legenda, sem explicações adicionais."
    )


def rewrite_title_prompt(original: str) -> str:
    return (
        "Reescreva este título de produto mantendo 99% da ideia original, apenas variando palavras "
        f'e estrutura para não ficar idêntico:\n\nTítulo original: "{original}"\n\n'
        "REGRAS:\n"
        "- Mantenha TODAS as informações importantes (marca, modelo, características)\n"
        "- Apenas varie a ordem das palavras ou use sinônimos\n"
        "- Mantenha o mesmo comprimento aproximado\n"
        "- NÃO adicione informações novas\n"
        "- NÃO remova informações importantes\n\n"
        "Responda APENAS com o título reescrito, sem explicações."
    )


def rewrite_caption_prompt(original: str) -> str:
    return (
        "Reescreva esta legenda mantendo 99% da ideia original, apenas variando palavras para não "
        f'ficar idêntica ao postar várias vezes:\n\nLegenda original: "{original}"\n\n'
        "REGRAS:\n"
        "- Mantenha o mesmo tom e estilo\n"
        "- Mantenha emojis e hashtags similares\n"
        "- Apenas varie palavras e estrutura da frase\n"
        "- Mantenha o CTA (call to action) se houver\n"
        "- NÃO mude o sentido da mensagem\n\n"
        "Responda APENAS com a legenda reescrita, sem explicações."
    )


def pin_caption_prompt(product_title: str, scene_description: Optional[str]) -> str:
    return (
        "Você é um especialista em marketing de moda no Pinterest. Crie um título e uma descrição "
        "otimizados para Pinterest para o seguinte produto:\n\n"
        f"Produto: {product_title}\n"
        f"Cenário da foto: {scene_description or 'foto estilizada de moda'}\n\n"
        "Regras:\n"
        "- O título deve ter no máximo 100 caracteres\n"
        "- A descrição deve ter entre 100-300 caracteres\n"
        "- Use palavras-chave relevantes para SEO no Pinterest\n"
        "- Inclua hashtags populares no final da descrição\n"
        "- O tom deve ser aspiracional e engajador\n"
        "- Foque em lifestyle, não em vendas diretas\n"
        "- Use emojis de forma estratégica\n\n"
        "Responda EXATAMENTE neste formato JSON:\n"
        '{\n  "title": "título aqui",\n  "description": "descrição aqui com hashtags"\n}'
    )


def image_prompt(product_title: str, style: str) -> str:
    return (
        f"Create a stunning Pinterest-worthy fashion photo. Product: {product_title}. Style: {style}. "
        "The image should be vertical (9:16 aspect ratio), highly aesthetic, with professional lighting "
        "and composition that would go viral on Pinterest. Make it look like a real professional "
        "photoshoot, not AI generated. Ultra high resolution, fashion magazine quality."
    )


def choose_scene(scene_index: Optional[int], rng: Optional[random.Random] = None) -> str:
    if scene_index is not None and scene_index >= 0:
        return SCENE_PROMPTS[scene_index % len(SCENE_PROMPTS)]
    return (rng or random).choice(SCENE_PROMPTS)


def parse_pin_caption(content: str, product_title: str) -> Dict[str, str]:
    """Pull the JSON object out of the model reply; fall back to a stock caption."""
    match = re.search(r"\{[\s\S]*\}", content or "")
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict) and (parsed.get("title") or parsed.get("description")):
            return {"title": str(parsed.get("title") or ""), "description": str(parsed.get("description") or "")}
    logger.info("Pin caption reply was not JSON; using stock caption")
    return {
        "title": f"✨ {product_title[:80]}",
        "description": (
            f"Look inspirador com {product_title}. Perfeito para o seu dia a dia! 💫 "
            "#moda #fashion #style #ootd #lookdodia"
        ),
    }


def message_text(data: Dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        raise MalformedPayloadError("AI gateway: resposta sem choices[0].message.")
    return (content or "").strip() if isinstance(content, str) else ""


def message_image(data: Dict[str, Any]) -> Optional[str]:
    """Image from ``images[0].image_url.url``, ``images[0].url`` or ``inline_data``."""
    try:
        images = data["choices"][0]["message"].get("images") or []
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    if not images or not isinstance(images[0], dict):
        return None
    first = images[0]
    url = (first.get("image_url") or {}).get("url") or first.get("url")
    if url:
        return url
    inline = first.get("inline_data")
    if isinstance(inline, dict) and inline.get("data"):
        return f"data:{inline.get('mime_type', 'image/png')};base64,{inline['data']}"
    return None


class AiGatewayClient:
    def __init__(self, api_key: str, fetcher: HttpFetcher, *, url: str = DEFAULT_AI_GATEWAY_URL) -> None:
        self.api_key = api_key
        self.fetcher = fetcher
        self.url = url

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: str = TEXT_MODEL,
        modalities: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        if not is_configured_key(self.api_key):
            raise ConfigurationError("AI_GATEWAY_API_KEY não configurada.")
        body: Dict[str, Any] = {"model": model, "messages": messages}
        if modalities:
            body["modalities"] = modalities
        response = await self.fetcher.post_json(
            self.url, body, headers={"Authorization": f"Bearer {self.api_key}"}, timeout=120.0
        )
        if response.status_code >= 400:
            logger.error("AI gateway HTTP %s: %s", response.status_code, redact_secrets(response.text[:300]))
            raise for_status(response.status_code, f"AI gateway HTTP {response.status_code}")
        try:
            data = response_json(response)
        except FetchError as exc:
            raise MalformedPayloadError(str(exc)) from exc
        if not isinstance(data, dict):
            raise MalformedPayloadError("AI gateway: resposta não é um objeto JSON.")
        return data

    async def _complete(self, prompt: str, system: Optional[str] = CAPTION_SYSTEM_PROMPT) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        return message_text(await self.chat(messages))

    async def video_caption(self, product_title: str, video_title: Optional[str] = None, platform: str = "pinterest") -> str:
        return await self._complete(caption_prompt(product_title, video_title, platform))

    async def rewrite_title(self, original: str) -> str:
        return await self._complete(rewrite_title_prompt(original))

    async def rewrite_caption(self, original: str) -> str:
        return await self._complete(rewrite_caption_prompt(original))

    async def pin_caption(self, product_title: str, scene_description: Optional[str] = None) -> Dict[str, str]:
        content = await self._complete(pin_caption_prompt(product_title, scene_description), system=None)
        return parse_pin_caption(content, product_title)

    async def pinterest_image(
        self,
        product_title: str,
        *,
        image_url: Optional[str] = None,
        custom_prompt: Optional[str] = None,
        scene_index: Optional[int] = None,
    ) -> Dict[str, str]:
        scene = choose_scene(scene_index)
        prompt = image_prompt(product_title, custom_prompt or scene)
        content: Union[str, List[Dict[str, Any]]] = prompt
        if image_url:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        data = await self.chat([{"role": "user", "content": content}], model=IMAGE_MODEL, modalities=["image", "text"])
        image = message_image(data)
        if not image:
            raise MalformedPayloadError("AI gateway: nenhuma imagem gerada.")
        return {"image": image, "sceneUsed": scene}
