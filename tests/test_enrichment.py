"""Unit tests for the enrichment service."""

import unittest
from unittest.mock import MagicMock

from insider_agent.services.enrichment import (
    Enricher,
    RETRIEVAL,
    news_search_url,
    search_url,
)

TOPICS = ["inflação", "juros", "câmbio", "bolsa"]


def make_factory(answer):
    service = MagicMock()
    service.generate_text.return_value = answer
    return MagicMock(return_value=service), service


def make_source(name, articles=None, error=None):
    source = MagicMock()
    source.name = name
    if error is not None:
        source.search.side_effect = error
    else:
        source.search.side_effect = lambda topic: articles.get(topic, []) if articles else []
    return source


class TestEnricher(unittest.TestCase):
    def test_empty_topics_no_network(self):
        factory, _ = make_factory("{}")
        result = Enricher(llm_factory=factory).enrich(7, [], "key", offline=False)
        self.assertEqual(result["id"], 7)
        self.assertEqual(len(result["insights"]), 1)
        self.assertEqual(len(result["news"]), 1)
        factory.assert_not_called()

    def test_offline_placeholders(self):
        factory, _ = make_factory("{}")
        result = Enricher(llm_factory=factory).enrich(1, TOPICS, "key", offline=True)
        self.assertEqual(len(result["insights"]), 4)
        self.assertEqual(len(result["news"]), 3)
        self.assertEqual(result["news"][0]["url"], search_url("inflação notícias Brasil"))
        factory.assert_not_called()

    def test_no_key_placeholders(self):
        factory, _ = make_factory("{}")
        result = Enricher(llm_factory=factory).enrich(1, ["juros"], "", offline=False)
        self.assertEqual(len(result["insights"]), 1)
        self.assertEqual(len(result["news"]), 1)
        factory.assert_not_called()

    def test_offline_is_deterministic(self):
        enricher = Enricher()
        self.assertEqual(
            enricher.enrich(1, TOPICS, "", offline=True),
            enricher.enrich(1, TOPICS, "", offline=True),
        )

    def test_generative(self):
        answer = """```json
        {"insights": ["Primeiro", "", 3, "Segundo"],
         "news": [
            {"title": "Notícia A", "url": "https://example.com/a"},
            {"title": "Notícia B", "url": "/relative"},
            {"title": "", "url": "https://example.com/c"},
            "texto solto",
            {"title": "Notícia D"}
         ]}
        ```"""
        factory, service = make_factory(answer)
        result = Enricher(llm_factory=factory, timeout=10).enrich(3, TOPICS, "key", offline=False)

        factory.assert_called_once_with("key", timeout=10)
        self.assertIn("inflação, juros", service.generate_text.call_args.kwargs["prompt"])
        self.assertEqual(result["insights"], ["Primeiro", "Segundo"])
        self.assertEqual(
            result["news"],
            [
                {"title": "Notícia A", "url": "https://example.com/a"},
                {"title": "Notícia B", "url": search_url("Notícia B")},
                {"title": "Notícia D", "url": search_url("Notícia D")},
            ],
        )

    def test_generative_failure_or_timeout(self):
        factory, _ = make_factory(None)
        result = Enricher(llm_factory=factory).enrich(3, TOPICS, "key", offline=False)
        self.assertEqual(len(result["insights"]), 1)
        self.assertIn("inflação, juros", result["insights"][0])
        # No news from the model, so one search link per topic, up to three
        self.assertEqual(
            [n["url"] for n in result["news"]], [news_search_url(t) for t in TOPICS[:3]]
        )

    def test_generative_unparseable(self):
        factory, _ = make_factory("Aqui estão alguns insights " + "x" * 500)
        result = Enricher(llm_factory=factory).enrich(3, ["juros"], "key", offline=False)
        self.assertEqual(len(result["insights"]), 1)
        self.assertTrue(result["insights"][0].startswith("💡 Aqui estão"))
        self.assertLessEqual(len(result["insights"][0]), 302)
        self.assertEqual(len(result["news"]), 1)

    def test_generative_deeply_nested_answer(self):
        factory, _ = make_factory("[" * 200000)
        result = Enricher(llm_factory=factory).enrich(1, ["mercado"], "key", offline=False)
        self.assertEqual(result["id"], 1)
        self.assertEqual(len(result["insights"]), 1)
        self.assertEqual(result["news"], [{"title": "📰 Pesquisar notícias: mercado", "url": news_search_url("mercado")}])

    def test_generative_empty_lists_get_defaults(self):
        factory, _ = make_factory('{"insights": [], "news": []}')
        result = Enricher(llm_factory=factory).enrich(3, ["juros", "bolsa"], "key", offline=False)
        self.assertEqual(len(result["insights"]), 2)
        self.assertEqual(len(result["news"]), 2)

    def test_retrieval_takes_first_result_per_source(self):
        first = make_source(
            "A",
            {
                "juros": [
                    {"source": "A", "title": "Juros sobem", "url": "https://a/1", "description": "Copom"},
                    {"source": "A", "title": "Outra", "url": "https://a/2", "description": ""},
                ]
            },
        )
        second = make_source(
            "B",
            {
                "juros": [{"source": "B", "title": "Juros B", "url": "https://b/1", "description": ""}],
                "bolsa": [{"source": "B", "title": "Bolsa B", "url": "https://b/2", "description": ""}],
            },
        )
        enricher = Enricher(strategy=RETRIEVAL, sources=[first, second])

        result = enricher.enrich(9, ["juros", "bolsa"], "", offline=False)

        self.assertEqual(
            result["news"],
            [
                {"title": "Juros sobem", "url": "https://a/1"},
                {"title": "Juros B", "url": "https://b/1"},
                {"title": "Bolsa B", "url": "https://b/2"},
            ],
        )
        self.assertEqual(result["insights"], ["juros: Copom"])

    def test_retrieval_source_failure_is_swallowed(self):
        broken = make_source("broken", error=RuntimeError("down"))
        working = make_source(
            "ok", {"bolsa": [{"source": "ok", "title": "Bolsa", "url": "https://b", "description": ""}]}
        )
        enricher = Enricher(strategy=RETRIEVAL, sources=[broken, working])

        result = enricher.enrich(9, ["juros", "bolsa"], "", offline=False)

        self.assertEqual(broken.search.call_count, 2)
        self.assertEqual(result["news"], [{"title": "Bolsa", "url": "https://b"}])
        self.assertEqual(len(result["insights"]), 2)

    def test_retrieval_offline_skips_sources(self):
        source = make_source("A", {})
        result = Enricher(strategy=RETRIEVAL, sources=[source]).enrich(1, ["juros"], "", offline=True)
        source.search.assert_not_called()
        self.assertTrue(result["news"])

    def test_unknown_strategy(self):
        with self.assertRaises(ValueError):
            Enricher(strategy="magic")


if __name__ == "__main__":
    unittest.main()
