from django.contrib import admin

from catalog import accounts, ingestion
from catalog.models import (
    AnimeCharacter,
    AnimeSeries,
    Character,
    Episode,
    Genre,
    Manhwa,
    ManhwaChapter,
    PaymentReceipt,
    Profile,
    TranscodeJob,
)
from catalog.tasks import poll_transcode_job


class EpisodeInline(admin.TabularInline):
    model = Episode
    fields = ("episode_number", "title", "processing_status")
    readonly_fields = ("processing_status",)
    extra = 0


class CastInline(admin.TabularInline):
    model = AnimeCharacter
    autocomplete_fields = ("character",)
    extra = 0


@admin.register(AnimeSeries)
class AnimeSeriesAdmin(admin.ModelAdmin):
    list_display = ("__str__", "mal_id", "status", "release_year", "created_at")
    search_fields = ("title_english", "title_romaji")
    list_filter = ("genres",)
    inlines = [EpisodeInline, CastInline]

    def delete_model(self, request, obj):
        ingestion.delete_series(obj)


@admin.register(Episode)
class EpisodeAdmin(admin.ModelAdmin):
    list_display = ("__str__", "processing_status", "created_at")
    list_filter = ("processing_status",)
    readonly_fields = ("video_urls", "raw_file_path")

    def delete_model(self, request, obj):
        ingestion.delete_episode(obj)


@admin.register(TranscodeJob)
class TranscodeJobAdmin(admin.ModelAdmin):
    list_display = ("external_id", "episode", "status", "poll_count", "updated_at")
    list_filter = ("status",)
    readonly_fields = ("external_id", "outputs", "error", "poll_count")
    actions = ["resume_polling"]

    @admin.action(description="Resume status polling")
    def resume_polling(self, request, queryset):
        """Re-queue polling for jobs whose worker chain was lost."""
        count = 0
        for job in queryset.exclude(status__in=TranscodeJob.TERMINAL).exclude(external_id=""):
            poll_transcode_job.delay(str(job.id))
            count += 1
        self.message_user(request, f"Queued polling for {count} job(s).")


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("naju_id", "user", "subscription_status", "subscription_expires_at")
    list_filter = ("subscription_status",)
    search_fields = ("naju_id", "user__username", "user__email")


@admin.register(PaymentReceipt)
class PaymentReceiptAdmin(admin.ModelAdmin):
    list_display = ("id", "profile", "status", "created_at")
    list_filter = ("status",)
    actions = ["approve_30_days", "reject"]

    @admin.action(description="Approve and add 30 days")
    def approve_30_days(self, request, queryset):
        for receipt in queryset.filter(status=PaymentReceipt.Status.PENDING):
            accounts.review_receipt(receipt, PaymentReceipt.Status.APPROVED, 30)

    @admin.action(description="Reject")
    def reject(self, request, queryset):
        for receipt in queryset.filter(status=PaymentReceipt.Status.PENDING):
            accounts.review_receipt(receipt, PaymentReceipt.Status.REJECTED)


admin.site.register(Genre)
admin.site.register(Manhwa)
admin.site.register(ManhwaChapter)


@admin.register(Character)
class CharacterAdmin(admin.ModelAdmin):
    list_display = ("name", "mal_id")
    search_fields = ("name",)
