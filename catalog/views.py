import hmac
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import generics, status, views
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from . import accounts, ingestion, s3
from .exceptions import ValidationError
from .jikan import JikanClient
from .models import (
    AnimeCharacter,
    AnimeSeries,
    Episode,
    Favorite,
    Manhwa,
    ManhwaChapter,
    PaymentReceipt,
    TranscodeJob,
)
from .permissions import HasActiveSubscription, IsAdminProfile
from .serializers import (
    AccountDeleteSerializer,
    AnimeCharacterSerializer,
    AnimeSeriesDetailSerializer,
    AnimeSeriesSerializer,
    CharacterImportSerializer,
    ChapterUploadSerializer,
    FavoriteRequestSerializer,
    IngestRequestSerializer,
    JikanImportSerializer,
    ManhwaChapterSerializer,
    ManhwaDetailSerializer,
    ManhwaSerializer,
    PresignRequestSerializer,
    PresignResponseSerializer,
    ProfileSerializer,
    ReceiptPresignSerializer,
    ReceiptReviewSerializer,
    ReceiptSerializer,
    SubscriptionExtendSerializer,
    TranscodeJobSerializer,
    WatchEpisodeSerializer,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------
# Catalogue
# -----------------------------------------------------
class SeriesListView(generics.ListAPIView):
    """
    Public series list, newest first. Supports ?q=<title> and ?genre=<name>.
    """
    permission_classes = [AllowAny]
    serializer_class = AnimeSeriesSerializer

    def get_queryset(self):
        qs = AnimeSeries.objects.prefetch_related("genres")
        q = self.request.query_params.get("q")
        if q:
            qs = qs.filter(Q(title_english__icontains=q) | Q(title_romaji__icontains=q))
        genre = self.request.query_params.get("genre")
        if genre:
            qs = qs.filter(genres__name__iexact=genre)
        return qs.distinct()


class SeriesDetailView(views.APIView):
    def get_permissions(self):
        if self.request.method == "DELETE":
            return [IsAdminProfile()]
        return [AllowAny()]

    def get(self, request, series_id):
        series = get_object_or_404(AnimeSeries.objects.prefetch_related("genres", "episodes"), pk=series_id)
        return Response(AnimeSeriesDetailSerializer(series).data)

    def delete(self, request, series_id):
        series = get_object_or_404(AnimeSeries, pk=series_id)
        ingestion.delete_series(series)
        return Response({"success": True, "message": f"Anime series {series_id} and all related data deleted."})


class EpisodeDetailView(views.APIView):
    permission_classes = [IsAdminProfile]

    def delete(self, request, episode_id):
        episode = get_object_or_404(Episode, pk=episode_id)
        ingestion.delete_episode(episode)
        return Response({"success": True})


class WatchEpisodeView(views.APIView):
    permission_classes = [IsAuthenticated, HasActiveSubscription]

    def get(self, request, episode_id):
        episode = get_object_or_404(Episode.objects.select_related("series"), pk=episode_id)
        return Response(WatchEpisodeSerializer(episode).data)


class ManhwaListView(generics.ListAPIView):
    permission_classes = [AllowAny]
    serializer_class = ManhwaSerializer
    queryset = Manhwa.objects.all()


class ManhwaDetailView(views.APIView):
    permission_classes = [AllowAny]

    def get(self, request, manhwa_id):
        manhwa = get_object_or_404(Manhwa.objects.prefetch_related("chapters"), pk=manhwa_id)
        return Response(ManhwaDetailSerializer(manhwa).data)


class ChapterReadView(views.APIView):
    permission_classes = [IsAuthenticated, HasActiveSubscription]

    def get(self, request, chapter_id):
        chapter = get_object_or_404(ManhwaChapter, pk=chapter_id)
        return Response(ManhwaChapterSerializer(chapter).data)


class ChapterUploadView(views.APIView):
    """
    Multipart upload of a chapter, either as page images (pages=<file>, in
    reading order) or as a single chapter PDF (pdf=<file>).
    """
    permission_classes = [IsAdminProfile]

    def post(self, request, manhwa_id):
        manhwa = get_object_or_404(Manhwa, pk=manhwa_id)
        ser = ChapterUploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            with transaction.atomic():
                chapter = ManhwaChapter.objects.create(
                    manhwa=manhwa,
                    chapter_number=data["chapter_number"],
                    title=data.get("title") or None,
                )
                if data.get("pdf"):
                    ingestion.ingest_chapter_pdf(chapter, data["pdf"])
                else:
                    ingestion.ingest_chapter_pages(chapter, data["pages"])
        except IntegrityError as e:
            raise ValidationError(f"Chapter {data['chapter_number']} already exists.") from e

        return Response(ManhwaChapterSerializer(chapter).data, status=status.HTTP_201_CREATED)


# -----------------------------------------------------
# Episode ingestion
# -----------------------------------------------------
class PresignUploadView(views.APIView):
    """
    Returns a presigned PUT URL + key so the admin UI can upload the raw episode
    directly to the raw bucket without streaming through Django.
    """
    permission_classes = [IsAdminProfile]

    def post(self, request):
        ser = PresignRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        series = get_object_or_404(AnimeSeries, pk=ser.validated_data["series_id"])
        content_type = ser.validated_data.get("content_type") or None

        key = ingestion.raw_upload_key(series.pk, ser.validated_data["filename"])
        signed = s3.create_presigned_put(settings.S3_RAW_BUCKET, key, content_type=content_type)
        resp = {"key": key, "url": signed["url"], "headers": signed.get("headers", {})}
        return Response(PresignResponseSerializer(resp).data, status=status.HTTP_201_CREATED)


class EpisodeIngestView(views.APIView):
    """
    Registers an episode for an uploaded raw file, submits the CloudConvert job
    and queues the server-side status poll.
    """
    permission_classes = [IsAdminProfile]

    def post(self, request):
        ser = IngestRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        series = get_object_or_404(AnimeSeries, pk=data["series_id"])

        episode, job = ingestion.start_episode_ingestion(
            series,
            data.get("episode_number"),
            data.get("key"),
            title=data.get("title"),
        )
        return Response(
            {"job_id": str(job.id), "episode_id": str(episode.id)},
            status=status.HTTP_202_ACCEPTED,
        )


class TranscodeJobDetailView(views.APIView):
    permission_classes = [IsAdminProfile]

    def get(self, request, job_id):
        job = get_object_or_404(TranscodeJob.objects.select_related("episode"), pk=job_id)
        return Response(TranscodeJobSerializer(job).data)


class CloudConvertWebhookView(views.APIView):
    """
    CloudConvert job callbacks. Authenticated by the shared x-webhook-secret header.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        secret = request.headers.get("x-webhook-secret", "")
        expected = settings.PROCESSING_SECRET_TOKEN
        if not expected or not hmac.compare_digest(secret, expected):
            return Response({"error": "Unauthorized"}, status=status.HTTP_401_UNAUTHORIZED)

        job_data = request.data.get("job") or {}
        external_id = job_data.get("id")
        if not external_id:
            return Response({"error": "Job payload is missing an id."}, status=status.HTTP_400_BAD_REQUEST)

        job = TranscodeJob.objects.select_related("episode").filter(external_id=external_id).first()
        if job is None:
            logger.warning("Webhook for unknown CloudConvert job %s", external_id)
            return Response({"message": "Unknown job"}, status=status.HTTP_404_NOT_FOUND)

        ingestion.apply_job_status(job, job_data)
        job.refresh_from_db()
        return Response({"success": True, "status": job.status})


# -----------------------------------------------------
# Jikan
# -----------------------------------------------------
class JikanSearchView(views.APIView):
    permission_classes = [IsAdminProfile]

    def get(self, request):
        return Response(JikanClient().search(request.query_params.get("q", "").strip()))


class JikanCharactersView(views.APIView):
    permission_classes = [IsAdminProfile]

    def get(self, request, mal_id):
        return Response(JikanClient().get_characters(mal_id))


class JikanImportView(views.APIView):
    permission_classes = [IsAdminProfile]

    def post(self, request):
        ser = JikanImportSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        series = ingestion.import_series_from_jikan(ser.validated_data["mal_id"])
        return Response(
            {"success": True, "anime_id": str(series.id), "series": AnimeSeriesSerializer(series).data},
            status=status.HTTP_201_CREATED,
        )


class SeriesCharactersView(views.APIView):
    """
    GET: the series' cast. POST (admin): import one Jikan character into the cast.
    """
    def get_permissions(self):
        if self.request.method == "POST":
            return [IsAdminProfile()]
        return [AllowAny()]

    def get(self, request, series_id):
        series = get_object_or_404(AnimeSeries, pk=series_id)
        cast = AnimeCharacter.objects.filter(series=series).select_related("character")
        return Response(AnimeCharacterSerializer(cast, many=True).data)

    def post(self, request, series_id):
        series = get_object_or_404(AnimeSeries, pk=series_id)
        ser = CharacterImportSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        link = ingestion.import_character(
            series,
            data["character_mal_id"],
            data["name"],
            image_url=data.get("image_url"),
            role=data["role"],
        )
        return Response({"success": True, "character_id": str(link.character_id)})


# -----------------------------------------------------
# Account
# -----------------------------------------------------
class SessionView(views.APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(accounts.session_context(request.user))


class ProfileView(views.APIView):
    def get(self, request):
        return Response(ProfileSerializer(request.user.profile).data)

    def patch(self, request):
        ser = ProfileSerializer(request.user.profile, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        ser.save()
        return Response(ser.data)

    def delete(self, request):
        ser = AccountDeleteSerializer(data=request.data, context={"profile": request.user.profile})
        ser.is_valid(raise_exception=True)
        accounts.delete_account(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class FavoriteListView(views.APIView):
    def get(self, request):
        favorites = (
            Favorite.objects.filter(profile=request.user.profile)
            .select_related("series")
            .prefetch_related("series__genres")
        )
        return Response(AnimeSeriesSerializer([f.series for f in favorites], many=True).data)

    def post(self, request):
        ser = FavoriteRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        series = get_object_or_404(AnimeSeries, pk=ser.validated_data["series_id"])
        _, created = Favorite.objects.get_or_create(profile=request.user.profile, series=series)
        return Response(
            {"series_id": str(series.pk), "favorited": True},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class FavoriteDetailView(views.APIView):
    def delete(self, request, series_id):
        Favorite.objects.filter(profile=request.user.profile, series_id=series_id).delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class ReceiptPresignView(views.APIView):
    def post(self, request):
        ser = ReceiptPresignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        key = accounts.receipt_key(request.user.profile, ser.validated_data["filename"])
        signed = s3.create_presigned_put(
            settings.S3_RECEIPTS_BUCKET, key, content_type=ser.validated_data.get("content_type") or None
        )
        resp = {"key": key, "url": signed["url"], "headers": signed.get("headers", {})}
        return Response(PresignResponseSerializer(resp).data, status=status.HTTP_201_CREATED)


class ReceiptListView(views.APIView):
    def get(self, request):
        return Response(ReceiptSerializer(request.user.profile.receipts.all(), many=True).data)

    def post(self, request):
        ser = ReceiptSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        key = ser.validated_data["receipt_key"]
        if not key.startswith(f"{request.user.pk}/"):
            raise ValidationError("Receipt key does not belong to this account.")
        ser.save(profile=request.user.profile)
        return Response(ser.data, status=status.HTTP_201_CREATED)


class ReceiptDetailView(views.APIView):
    def delete(self, request, receipt_id):
        receipt = get_object_or_404(PaymentReceipt, pk=receipt_id, profile=request.user.profile)
        accounts.delete_receipt(receipt)
        return Response(status=status.HTTP_204_NO_CONTENT)


# -----------------------------------------------------
# Back-office: subscriptions
# -----------------------------------------------------
class SubscriptionExtendView(views.APIView):
    permission_classes = [IsAdminProfile]

    def post(self, request):
        ser = SubscriptionExtendSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user_id = ser.validated_data["user_id"]
        profile = accounts.extend_subscription(user_id, ser.validated_data["days_to_add"])
        return Response({
            "success": True,
            "message": f"Subscription for user {user_id} has been updated.",
            "subscription_expires_at": profile.subscription_expires_at,
        })


class ReceiptReviewView(views.APIView):
    permission_classes = [IsAdminProfile]

    def post(self, request, receipt_id):
        receipt = get_object_or_404(PaymentReceipt.objects.select_related("profile"), pk=receipt_id)
        ser = ReceiptReviewSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        accounts.review_receipt(receipt, ser.validated_data["status"], ser.validated_data.get("days_to_add"))
        return Response(ReceiptSerializer(receipt).data)
