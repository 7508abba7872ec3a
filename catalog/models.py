import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

# Fixed rendition policy; order is best quality first
RENDITIONS = ("1080p", "720p", "480p")


class Genre(models.Model):
    name = models.CharField(max_length=64, unique=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class AnimeSeries(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mal_id = models.PositiveIntegerField(unique=True, null=True, blank=True)  # MyAnimeList id (Jikan)
    title_english = models.CharField(max_length=255, blank=True, default="")
    title_romaji = models.CharField(max_length=255, blank=True, default="")
    synopsis = models.TextField(blank=True, default="")
    poster_url = models.URLField(max_length=512, blank=True, default="")
    status = models.CharField(max_length=64, blank=True, default="")
    release_year = models.PositiveSmallIntegerField(null=True, blank=True)
    score = models.DecimalField(max_digits=4, decimal_places=2, null=True, blank=True)
    episodes_total = models.PositiveIntegerField(null=True, blank=True)
    genres = models.ManyToManyField(Genre, related_name="series", blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "anime series"

    def __str__(self):
        return self.title_english or self.title_romaji or str(self.id)


class Episode(models.Model):
    class ProcessingStatus(models.TextChoices):
        PENDING = "pending"
        PROCESSING = "processing"
        READY = "ready"
        PARTIAL = "partial"   # some renditions missing, still playable
        FAILED = "failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    series = models.ForeignKey(AnimeSeries, on_delete=models.CASCADE, related_name="episodes")
    episode_number = models.PositiveIntegerField()
    title = models.CharField(max_length=255, null=True, blank=True)
    # {"1080p": url, ...}; null while processing
    video_urls = models.JSONField(null=True, blank=True)
    raw_file_path = models.CharField(max_length=512, blank=True, default="")  # key in S3_RAW_BUCKET
    processing_status = models.CharField(
        max_length=16, choices=ProcessingStatus.choices, default=ProcessingStatus.PENDING
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["series", "episode_number"]
        constraints = [
            models.UniqueConstraint(fields=["series", "episode_number"], name="unique_episode_number"),
        ]

    def __str__(self):
        return f"{self.series} - Episode {self.episode_number}"

    @property
    def is_playable(self) -> bool:
        return bool(self.video_urls)


class TranscodeJob(models.Model):
    class Status(models.TextChoices):
        SUBMITTED = "submitted"
        PROCESSING = "processing"
        FINISHED = "finished"
        ERROR = "error"

    TERMINAL = (Status.FINISHED, Status.ERROR)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    episode = models.ForeignKey(Episode, on_delete=models.CASCADE, related_name="jobs")
    external_id = models.CharField(max_length=128, blank=True, default="", db_index=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.SUBMITTED)
    poll_count = models.PositiveIntegerField(default=0)
    outputs = models.JSONField(default=list, blank=True)    # [{label, key, url}, ...]
    error = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.external_id or self.id} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL


class Character(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mal_id = models.PositiveIntegerField(unique=True)  # MyAnimeList character id
    name = models.CharField(max_length=255)
    image_url = models.URLField(max_length=512, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class AnimeCharacter(models.Model):
    series = models.ForeignKey(AnimeSeries, on_delete=models.CASCADE, related_name="cast")
    character = models.ForeignKey(Character, on_delete=models.CASCADE, related_name="appearances")
    role = models.CharField(max_length=32)  # Jikan: "Main" / "Supporting"

    class Meta:
        ordering = ["series", "role", "character__name"]
        constraints = [
            models.UniqueConstraint(fields=["series", "character"], name="unique_anime_character"),
        ]

    def __str__(self):
        return f"{self.character} in {self.series} ({self.role})"


class Manhwa(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    cover_url = models.URLField(max_length=512, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "manhwa"

    def __str__(self):
        return self.title


class ManhwaChapter(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    manhwa = models.ForeignKey(Manhwa, on_delete=models.CASCADE, related_name="chapters")
    chapter_number = models.PositiveIntegerField()
    title = models.CharField(max_length=255, null=True, blank=True)
    image_urls = models.JSONField(default=list, blank=True)  # ordered page URLs

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["manhwa", "chapter_number"]
        constraints = [
            models.UniqueConstraint(fields=["manhwa", "chapter_number"], name="unique_chapter_number"),
        ]

    def __str__(self):
        return f"{self.manhwa} - Chapter {self.chapter_number}"


class Profile(models.Model):
    class SubscriptionStatus(models.TextChoices):
        NONE = "none"
        ACTIVE = "active"
        EXPIRED = "expired"

    ADMIN_ROLE = "admin"

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    naju_id = models.CharField(max_length=64, unique=True)
    roles = models.JSONField(default=list, blank=True)
    subscription_status = models.CharField(
        max_length=16, choices=SubscriptionStatus.choices, default=SubscriptionStatus.NONE
    )
    subscription_expires_at = models.DateTimeField(null=True, blank=True)
    avatar_url = models.URLField(max_length=512, blank=True, default="")
    banner_url = models.URLField(max_length=512, blank=True, default="")
    bio = models.TextField(blank=True, default="")
    preferences = models.JSONField(default=dict, blank=True)  # {"theme": "dark", "accentColor": "#..."}
    favorites = models.ManyToManyField(AnimeSeries, through="Favorite", related_name="favorited_by", blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.naju_id

    @property
    def is_admin(self) -> bool:
        return self.ADMIN_ROLE in (self.roles or [])

    @property
    def has_active_subscription(self) -> bool:
        return bool(self.subscription_expires_at and self.subscription_expires_at > timezone.now())

    def extend_subscription(self, days: int):
        """Add days on top of a running subscription, or start one from now."""
        now = timezone.now()
        base = self.subscription_expires_at
        if not base or base <= now:
            base = now
        self.subscription_expires_at = base + timedelta(days=days)
        self.subscription_status = self.SubscriptionStatus.ACTIVE
        self.save(update_fields=["subscription_expires_at", "subscription_status", "updated_at"])


class Favorite(models.Model):
    profile = models.ForeignKey(Profile, on_delete=models.CASCADE)
    series = models.ForeignKey(AnimeSeries, on_delete=models.CASCADE)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["profile", "series"], name="unique_favorite"),
        ]


class PaymentReceipt(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending"
        APPROVED = "approved"
        REJECTED = "rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    profile = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name="receipts")
    receipt_key = models.CharField(max_length=512)  # key in S3_RECEIPTS_BUCKET
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)

    created_at = models.DateTimeField(auto_now_add=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
