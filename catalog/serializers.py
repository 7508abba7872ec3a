from rest_framework import serializers

from .models import (
    AnimeCharacter,
    AnimeSeries,
    Episode,
    Manhwa,
    ManhwaChapter,
    PaymentReceipt,
    Profile,
    TranscodeJob,
)

THEMES = {"light", "dark"}


class EpisodeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Episode
        fields = [
            "id",
            "series",
            "episode_number",
            "title",
            "processing_status",
            "created_at",
        ]


class WatchEpisodeSerializer(serializers.ModelSerializer):
    series_title = serializers.CharField(source="series.__str__", read_only=True)

    class Meta:
        model = Episode
        fields = [
            "id",
            "series",
            "series_title",
            "episode_number",
            "title",
            "video_urls",
            "processing_status",
        ]


class AnimeSeriesSerializer(serializers.ModelSerializer):
    genres = serializers.SlugRelatedField(many=True, read_only=True, slug_field="name")

    class Meta:
        model = AnimeSeries
        fields = [
            "id",
            "mal_id",
            "title_english",
            "title_romaji",
            "synopsis",
            "poster_url",
            "status",
            "release_year",
            "score",
            "episodes_total",
            "genres",
            "created_at",
        ]


class AnimeSeriesDetailSerializer(AnimeSeriesSerializer):
    episodes = EpisodeSerializer(many=True, read_only=True)

    class Meta(AnimeSeriesSerializer.Meta):
        fields = AnimeSeriesSerializer.Meta.fields + ["episodes"]


class TranscodeJobSerializer(serializers.ModelSerializer):
    episode_status = serializers.CharField(source="episode.processing_status", read_only=True)
    video_urls = serializers.JSONField(source="episode.video_urls", read_only=True)

    class Meta:
        model = TranscodeJob
        fields = [
            "id",
            "episode",
            "external_id",
            "status",
            "poll_count",
            "error",
            "episode_status",
            "video_urls",
            "created_at",
            "updated_at",
        ]


class PresignRequestSerializer(serializers.Serializer):
    series_id = serializers.UUIDField()
    filename = serializers.CharField()
    content_type = serializers.CharField(required=False, allow_blank=True)

    def validate_content_type(self, value):
        if value and not value.startswith("video/"):
            raise serializers.ValidationError("Please select a valid video file (mp4, mkv, etc.).")
        return value


class PresignResponseSerializer(serializers.Serializer):
    key = serializers.CharField()
    url = serializers.URLField()
    headers = serializers.DictField(child=serializers.CharField(), required=False)


class IngestRequestSerializer(serializers.Serializer):
    series_id = serializers.UUIDField()
    # Optional at this layer; the ingestion trigger reports missing values itself
    episode_number = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    key = serializers.CharField(required=False, allow_blank=True)
    title = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)

    def validate_key(self, value):
        series_id = self.initial_data.get("series_id")
        if value and series_id and not value.startswith(f"{series_id}/"):
            raise serializers.ValidationError("Key does not belong to this series.")
        return value


class JikanImportSerializer(serializers.Serializer):
    mal_id = serializers.IntegerField(min_value=1)


class CharacterImportSerializer(serializers.Serializer):
    character_mal_id = serializers.IntegerField(min_value=1)
    name = serializers.CharField(max_length=255)
    image_url = serializers.URLField(max_length=512, required=False, allow_blank=True)
    role = serializers.CharField(max_length=32)


class AnimeCharacterSerializer(serializers.ModelSerializer):
    character_id = serializers.UUIDField(source="character.id", read_only=True)
    mal_id = serializers.IntegerField(source="character.mal_id", read_only=True)
    name = serializers.CharField(source="character.name", read_only=True)
    image_url = serializers.CharField(source="character.image_url", read_only=True)

    class Meta:
        model = AnimeCharacter
        fields = ["character_id", "mal_id", "name", "image_url", "role"]


class ProfileSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(source="user.email", read_only=True)
    is_admin = serializers.BooleanField(read_only=True)
    has_active_subscription = serializers.BooleanField(read_only=True)

    class Meta:
        model = Profile
        fields = [
            "naju_id",
            "email",
            "roles",
            "is_admin",
            "subscription_status",
            "subscription_expires_at",
            "has_active_subscription",
            "avatar_url",
            "banner_url",
            "bio",
            "preferences",
        ]
        read_only_fields = ["roles", "subscription_status", "subscription_expires_at"]

    def validate_naju_id(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Username cannot be empty.")
        qs = Profile.objects.filter(naju_id=value)
        if self.instance:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("This username is already taken.")
        return value

    def validate_preferences(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Preferences must be an object.")
        theme = value.get("theme")
        if theme is not None and theme not in THEMES:
            raise serializers.ValidationError(f"Theme must be one of {sorted(THEMES)}.")
        merged = dict(self.instance.preferences or {}) if self.instance else {}
        merged.update(value)
        return merged


class AccountDeleteSerializer(serializers.Serializer):
    confirm = serializers.CharField()

    def validate_confirm(self, value):
        profile = self.context["profile"]
        if value != profile.naju_id:
            raise serializers.ValidationError("Type your username to confirm account deletion.")
        return value


class SubscriptionExtendSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    days_to_add = serializers.IntegerField(min_value=1)


class ReceiptSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentReceipt
        fields = ["id", "receipt_key", "status", "created_at", "reviewed_at"]
        read_only_fields = ["status", "created_at", "reviewed_at"]


class ReceiptPresignSerializer(serializers.Serializer):
    filename = serializers.CharField()
    content_type = serializers.CharField(required=False, allow_blank=True)


class ReceiptReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[PaymentReceipt.Status.APPROVED, PaymentReceipt.Status.REJECTED])
    days_to_add = serializers.IntegerField(required=False, min_value=1)


class FavoriteRequestSerializer(serializers.Serializer):
    series_id = serializers.UUIDField()


class ManhwaChapterSerializer(serializers.ModelSerializer):
    class Meta:
        model = ManhwaChapter
        fields = ["id", "manhwa", "chapter_number", "title", "image_urls", "created_at"]


class ManhwaChapterSummarySerializer(serializers.ModelSerializer):
    page_count = serializers.SerializerMethodField()

    class Meta:
        model = ManhwaChapter
        fields = ["id", "chapter_number", "title", "page_count"]

    def get_page_count(self, obj):
        return len(obj.image_urls or [])


class ManhwaSerializer(serializers.ModelSerializer):
    class Meta:
        model = Manhwa
        fields = ["id", "title", "description", "cover_url", "created_at"]


class ManhwaDetailSerializer(ManhwaSerializer):
    chapters = ManhwaChapterSummarySerializer(many=True, read_only=True)

    class Meta(ManhwaSerializer.Meta):
        fields = ManhwaSerializer.Meta.fields + ["chapters"]


class ChapterUploadSerializer(serializers.Serializer):
    chapter_number = serializers.IntegerField(min_value=1)
    title = serializers.CharField(required=False, allow_blank=True, max_length=255)
    pages = serializers.ListField(child=serializers.ImageField(), required=False, allow_empty=False)
    pdf = serializers.FileField(required=False)

    def validate_pdf(self, value):
        if not value.name.lower().endswith(".pdf"):
            raise serializers.ValidationError("Chapter file must be a PDF.")
        return value

    def validate(self, attrs):
        if bool(attrs.get("pages")) == bool(attrs.get("pdf")):
            raise serializers.ValidationError("Upload either page images or a single chapter PDF.")
        return attrs
