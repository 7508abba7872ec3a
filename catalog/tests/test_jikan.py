"""
Tests for catalog/jikan.py and the Jikan import in catalog/ingestion.py
"""

from unittest.mock import MagicMock, patch

from django.core.cache import cache
from django.test import TestCase

from catalog.exceptions import UpstreamError, ValidationError
from catalog.ingestion import import_character, import_series_from_jikan
from catalog.jikan import JikanClient, genre_names, series_fields
from catalog.models import AnimeCharacter, AnimeSeries, Character, Genre

FRIEREN = {
    "mal_id": 52991,
    "title": "Sousou no Frieren",
    "title_english": "Frieren: Beyond Journey's End",
    "synopsis": "After the party of heroes defeated the Demon King...",
    "images": {"jpg": {"image_url": "https://cdn.myanimelist.net/s.jpg", "large_image_url": "https://cdn.myanimelist.net/l.jpg"}},
    "status": "Finished Airing",
    "year": 2023,
    "score": 9.3,
    "episodes": 28,
    "genres": [{"name": "Adventure"}, {"name": "Drama"}, {"name": "Fantasy"}],
    "themes": [{"name": "Drama"}],
}


def _response(ok=True, body=None, status_code=200):
    resp = MagicMock(ok=ok, status_code=status_code, text="err")
    resp.json.return_value = body or {}
    return resp


class SeriesFieldsTest(TestCase):
    def test_maps_jikan_record(self):
        fields = series_fields(FRIEREN)
        self.assertEqual(fields["mal_id"], 52991)
        self.assertEqual(fields["title_romaji"], "Sousou no Frieren")
        self.assertEqual(fields["poster_url"], "https://cdn.myanimelist.net/l.jpg")
        self.assertEqual(fields["release_year"], 2023)
        self.assertEqual(fields["episodes_total"], 28)

    def test_year_falls_back_to_aired(self):
        fields = series_fields({"title": "Old Show", "aired": {"prop": {"from": {"year": 1998}}}})
        self.assertEqual(fields["release_year"], 1998)
        self.assertEqual(fields["title_english"], "Old Show")

    def test_genre_names_are_unique(self):
        self.assertEqual(genre_names(FRIEREN), ["Adventure", "Drama", "Fantasy"])


class JikanClientTest(TestCase):
    def setUp(self):
        cache.clear()
        self.client = JikanClient()

    @patch("catalog.jikan.requests.get")
    def test_search_is_cached(self, mock_get):
        mock_get.return_value = _response(body={"data": [FRIEREN]})

        first = self.client.search("frieren")
        second = self.client.search("frieren")

        self.assertEqual(first, second)
        mock_get.assert_called_once()
        self.assertEqual(mock_get.call_args.kwargs["params"], {"q": "frieren", "limit": 10})

    @patch("catalog.jikan.requests.get")
    def test_error_response(self, mock_get):
        mock_get.return_value = _response(ok=False, status_code=429)
        with self.assertRaises(UpstreamError):
            self.client.get_anime(1)


class ImportSeriesTest(TestCase):
    def setUp(self):
        self.jikan = MagicMock()
        self.jikan.get_anime.return_value = FRIEREN

    def test_import_creates_series_and_genres(self):
        Genre.objects.create(name="Drama")

        series = import_series_from_jikan(52991, client=self.jikan)

        self.assertEqual(series.title_english, "Frieren: Beyond Journey's End")
        self.assertEqual(sorted(series.genres.values_list("name", flat=True)), ["Adventure", "Drama", "Fantasy"])
        self.assertEqual(Genre.objects.count(), 3)

    def test_reimport_rejected(self):
        import_series_from_jikan(52991, client=self.jikan)
        with self.assertRaises(ValidationError):
            import_series_from_jikan(52991, client=self.jikan)
        self.assertEqual(AnimeSeries.objects.count(), 1)

    def test_empty_record(self):
        self.jikan.get_anime.return_value = {}
        with self.assertRaises(UpstreamError):
            import_series_from_jikan(1, client=self.jikan)


class ImportCharacterTest(TestCase):
    def setUp(self):
        self.frieren = AnimeSeries.objects.create(mal_id=52991, title_english="Frieren")
        self.other = AnimeSeries.objects.create(mal_id=56885, title_english="Frieren Specials")

    def test_character_is_shared_between_series(self):
        first = import_character(self.frieren, 184947, "Frieren", "https://cdn.myanimelist.net/c.jpg", "Main")
        second = import_character(self.other, 184947, "Frieren (renamed)", None, "Supporting")

        self.assertEqual(Character.objects.count(), 1)
        self.assertEqual(first.character_id, second.character_id)
        self.assertEqual(Character.objects.get().name, "Frieren")

    def test_reimport_updates_role_only(self):
        import_character(self.frieren, 184947, "Frieren", None, "Supporting")
        link = import_character(self.frieren, 184947, "Frieren", None, "Main")

        self.assertEqual(AnimeCharacter.objects.count(), 1)
        self.assertEqual(AnimeCharacter.objects.get().role, "Main")
        self.assertEqual(link.role, "Main")

    def test_missing_fields(self):
        with self.assertRaises(ValidationError):
            import_character(self.frieren, 184947, "Frieren", None, "")
        with self.assertRaises(ValidationError):
            import_character(self.frieren, None, "Frieren", None, "Main")
        self.assertFalse(Character.objects.exists())
