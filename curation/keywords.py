"""Keyword profiles for content scoring.

A profile is plain data: keyword tiers, source-domain tiers, ordered content
types and the weights applied to each. The pt-BR profile below is the
default; other locales load the same structure from JSON.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, Field


class SourceQuality(BaseModel):
    premium: List[str] = Field(default_factory=list)
    good: List[str] = Field(default_factory=list)
    neutral: List[str] = Field(default_factory=list)
    avoid: List[str] = Field(default_factory=list)


class ContentType(BaseModel):
    name: str
    keywords: List[str]
    priority: int
    description: str = ""


class ScoringWeights(BaseModel):
    high_value_per_match: float = 20
    high_value_cap: float = 80
    medium_value_per_match: float = 10
    medium_value_cap: float = 40
    low_value_penalty: float = 15
    action_verb_relevance: float = 25
    photo_visual: float = 20
    photo_relevance: float = 15
    missing_photo_penalty: float = 30
    premium_visual: float = 20
    premium_relevance: float = 10
    good_visual: float = 10
    good_relevance: float = 5
    neutral_visual: float = 0
    neutral_relevance: float = 0
    avoid_visual: float = -20
    avoid_relevance: float = 0
    content_type_factor: float = 0.2
    headline_relevance: float = 10
    headline_min_words: int = 3
    visual_weight: float = 0.7
    relevance_weight: float = 0.3


class KeywordProfile(BaseModel):
    """Complete rule set for one locale."""

    locale: str
    high_value: List[str]
    medium_value: List[str]
    low_value: List[str]
    action_verbs: List[str]
    photo_indicators: List[str]
    source_quality: SourceQuality = Field(default_factory=SourceQuality)
    content_types: List[ContentType] = Field(default_factory=list)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "KeywordProfile":
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


PORTUGUESE_PROFILE = KeywordProfile(
    locale="pt-BR",
    high_value=[
        # beach / swimwear
        "biquíni", "maiô", "praia", "piscina", "verão", "sol", "bronzeado",
        # fashion / style
        "look", "vestido", "roupa", "estilo", "decote", "sensual", "sexy", "gata", "gostosa", "linda",
        # fitness / body
        "academia", "treino", "malhação", "corpo", "forma", "saúde", "shape", "barriga", "trincada",
        # events
        "festa", "evento", "tapete vermelho", "premiação", "gala", "red carpet",
        # social media
        "foto", "fotos", "selfie", "stories", "instagram", "tiktok", "post", "clique",
        # lifestyle
        "viagem", "férias", "casa", "luxo", "passeio", "barco", "iate",
    ],
    medium_value=[
        "família", "namorado", "relacionamento", "namoro", "casamento", "filho", "filha",
        "trabalho", "projeto", "novela", "filme", "música", "show", "apresentação",
        "aniversário", "festa", "comemoração", "celebração",
    ],
    low_value=[
        # interviews / statements
        "entrevista", "declaração", "opinião", "comentário", "disse", "afirmou", "falou",
        "contou", "revelou em entrevista",
        # politics / legal
        "política", "eleição", "governo", "lei", "justiça", "tribunal", "processo",
        "advogado", "multa", "imposto",
        # business / money
        "negócio", "empresa", "investimento", "dinheiro", "contrato", "salário",
        "patrimônio", "lucro",
        # health / medical
        "doença", "hospital", "morte", "acidente", "problema", "cirurgia", "tratamento", "doente",
        # relationship drama
        "terminou", "separou", "brigou", "discussão", "polêmica sem foto", "escândalo",
        "traição", "fim do relacionamento",
        # passing mentions
        "citou", "mencionou", "lembrou", "segundo fontes", "de acordo com", "conforme",
        "segundo informações",
        # news about news
        "repercussão", "internautas", "redes sociais reagiram", "web comenta",
        "comentários", "críticas",
    ],
    action_verbs=[
        "exibiu", "exibe", "mostrou", "mostra", "revelou", "revela", "expôs", "apresentou",
        "posou", "posa", "clicou", "fotografou", "registrou", "capturou",
        "postou", "posta", "compartilhou", "compartilha", "publicou", "publica", "divulgou",
        "apareceu", "aparece", "surgiu", "surge", "estava", "ficou", "usou", "usa",
        "fez", "faz", "foi", "está", "saiu", "chegou", "voltou",
    ],
    photo_indicators=[
        "foto", "fotos", "imagem", "imagens", "clique", "registro", "flagra", "flagrada", "clicada",
        "selfie", "stories", "post", "publicação", "instagram", "tiktok",
        "vídeo", "vídeos", "filmada", "gravação",
        "posa", "posou", "exibe", "exibiu", "mostra", "mostrou", "aparece", "apareceu", "surge", "surgiu",
    ],
    source_quality=SourceQuality(
        premium=["quem.com.br", "caras.com.br", "ego.com.br", "purepeople.com.br", "gshow.com.br"],
        good=[
            "metropoles.com", "papelpop.com", "extra.globo.com",
            "gente.ig.com.br", "entretenimento.uol.com.br",
        ],
        neutral=["ig.com.br", "terra.com.br", "uol.com.br", "r7.com", "msn.com"],
        avoid=["folha.uol.com.br", "estadao.com.br", "g1.globo.com", "bbc.com", "cnn.com.br"],
    ),
    content_types=[
        ContentType(
            name="praia-biquini",
            keywords=["biquíni", "maiô", "praia", "piscina"],
            priority=95,
            description="Beach/swimwear content",
        ),
        ContentType(
            name="moda-estilo",
            keywords=["look", "vestido", "roupa", "estilo", "decote"],
            priority=85,
            description="Fashion/style content",
        ),
        ContentType(
            name="academia-fitness",
            keywords=["academia", "treino", "shape", "corpo", "barriga"],
            priority=80,
            description="Fitness/body content",
        ),
        ContentType(
            name="evento-festa",
            keywords=["festa", "evento", "premiação", "gala"],
            priority=75,
            description="Event/party content",
        ),
        ContentType(
            name="social-media",
            keywords=["foto", "selfie", "stories", "instagram", "post"],
            priority=70,
            description="Social media content",
        ),
        ContentType(
            name="lifestyle",
            keywords=["viagem", "casa", "luxo", "passeio", "barco"],
            priority=65,
            description="Lifestyle content",
        ),
        ContentType(
            name="relacionamento",
            keywords=["namorado", "relacionamento", "namoro", "casamento"],
            priority=50,
            description="Relationship content",
        ),
        ContentType(
            name="trabalho",
            keywords=["trabalho", "projeto", "novela", "filme", "show"],
            priority=40,
            description="Work/career content",
        ),
        ContentType(
            name="entrevista",
            keywords=["entrevista", "declaração", "opinião", "disse"],
            priority=20,
            description="Interview/statement content",
        ),
    ],
)
