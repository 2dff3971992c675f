"""Demo content loaded into empty collections by the local store."""

from app import collections as col

SEED_COLLECTIONS = {
    col.IDLE_FAB_MESSAGES: [
        {"text": "Precisa de ajuda? Fale com o Bob, nosso assistente.", "order": 0},
        {"text": "Confira as novidades do mercado no painel de notícias.", "order": 1},
    ],
    col.LABS: [
        {
            "title": "Introdução ao portal",
            "subtitle": "Primeiros passos",
            "category": "Onboarding",
            "lastModified": "2024-08-01",
            "videoUrl": "https://www.youtube.com/embed/dQw4w9WgXcQ",
        },
    ],
    col.RANKINGS: [
        {"name": "Ranking Mensal", "pdfUrl": "https://example.com/ranking.pdf", "order": 0, "recipientIds": ["all"]},
    ],
    col.NEWS: [
        {
            "title": "Bem-vindo à nova intranet",
            "snippet": "A intranet foi renovada com novas funcionalidades.",
            "category": "Comunicado",
            "date": "2024-08-01",
            "imageUrl": "",
            "link": "",
            "isHighlight": True,
        },
    ],
}
