from django.urls import path
from .views import (
    ChapterReadView,
    ChapterUploadView,
    CloudConvertWebhookView,
    EpisodeDetailView,
    EpisodeIngestView,
    FavoriteDetailView,
    FavoriteListView,
    JikanCharactersView,
    JikanImportView,
    JikanSearchView,
    ManhwaDetailView,
    ManhwaListView,
    PresignUploadView,
    ProfileView,
    ReceiptDetailView,
    ReceiptListView,
    ReceiptPresignView,
    ReceiptReviewView,
    SeriesCharactersView,
    SeriesDetailView,
    SeriesListView,
    SessionView,
    SubscriptionExtendView,
    TranscodeJobDetailView,
    WatchEpisodeView,
)

urlpatterns = [
    # catalogue
    path("series/", SeriesListView.as_view(), name="series_list"),
    path("series/<uuid:series_id>/", SeriesDetailView.as_view(), name="series_detail"),
    path("episodes/<uuid:episode_id>/", EpisodeDetailView.as_view(), name="episode_detail"),
    path("watch/<uuid:episode_id>/", WatchEpisodeView.as_view(), name="watch_episode"),
    path("manhwa/", ManhwaListView.as_view(), name="manhwa_list"),
    path("manhwa/<uuid:manhwa_id>/", ManhwaDetailView.as_view(), name="manhwa_detail"),
    path("manhwa/<uuid:manhwa_id>/chapters/", ChapterUploadView.as_view(), name="chapter_upload"),
    path("chapters/<uuid:chapter_id>/", ChapterReadView.as_view(), name="chapter_read"),

    # ingestion
    path("uploads/presign/", PresignUploadView.as_view(), name="uploads_presign"),
    path("episodes/ingest/", EpisodeIngestView.as_view(), name="episode_ingest"),
    path("jobs/<uuid:job_id>/", TranscodeJobDetailView.as_view(), name="job_detail"),
    path("webhooks/cloudconvert/", CloudConvertWebhookView.as_view(), name="cloudconvert_webhook"),

    # jikan
    path("jikan/search/", JikanSearchView.as_view(), name="jikan_search"),
    path("jikan/anime/<int:mal_id>/characters/", JikanCharactersView.as_view(), name="jikan_characters"),
    path("jikan/import/", JikanImportView.as_view(), name="jikan_import"),
    path("series/<uuid:series_id>/characters/", SeriesCharactersView.as_view(), name="series_characters"),

    # account
    path("me/", SessionView.as_view(), name="session"),
    path("profile/", ProfileView.as_view(), name="profile"),
    path("favorites/", FavoriteListView.as_view(), name="favorites"),
    path("favorites/<uuid:series_id>/", FavoriteDetailView.as_view(), name="favorite_detail"),
    path("receipts/presign/", ReceiptPresignView.as_view(), name="receipts_presign"),
    path("receipts/", ReceiptListView.as_view(), name="receipts"),
    path("receipts/<uuid:receipt_id>/", ReceiptDetailView.as_view(), name="receipt_detail"),

    # back-office
    path("admin/subscriptions/", SubscriptionExtendView.as_view(), name="subscription_extend"),
    path("admin/receipts/<uuid:receipt_id>/review/", ReceiptReviewView.as_view(), name="receipt_review"),
]
