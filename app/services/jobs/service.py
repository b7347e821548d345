from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.models.generation_job import GenerationJob


class JobService:
    def __init__(self, db: Session):
        self.db = db

    def _save(self, job: GenerationJob) -> GenerationJob:
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def create_job(
        self,
        user_id: str,
        title: str,
        prompt: str,
        lyrics: str,
        lyrics_source: str,
        provider: str,
        credits_reserved: int,
        status: str,
        language: str | None = None,
        duration_class: str | None = None,
        params: dict | None = None,
        job_id: str | None = None,
    ) -> GenerationJob:
        job_kwargs: dict = {
            "user_id": user_id,
            "title": title,
            "prompt": prompt,
            "lyrics": lyrics,
            "lyrics_source": lyrics_source,
            "provider": provider,
            "credits_reserved": credits_reserved,
            "status": status,
            "language": language,
            "duration_class": duration_class,
            "params": params or {},
        }
        if job_id is not None:
            job_kwargs["job_id"] = job_id
        return self._save(GenerationJob(**job_kwargs))

    def set_status(self, job: GenerationJob, status: str, error_code: str | None = None) -> GenerationJob:
        job.status = status
        if error_code is not None:
            job.error_code = error_code
        job.heartbeat_at = datetime.now(timezone.utc)
        return self._save(job)

    def set_deduction(self, job: GenerationJob, transaction_id: str | None) -> GenerationJob:
        job.deduct_transaction_id = transaction_id
        return self._save(job)

    def set_handle(self, job: GenerationJob, provider_job_id: str) -> GenerationJob:
        job.provider_job_id = provider_job_id
        return self._save(job)

    def set_result(
        self,
        job: GenerationJob,
        artifact_url: str,
        library_id: str,
        image_url: str | None = None,
    ) -> GenerationJob:
        job.artifact_url = artifact_url
        job.library_id = library_id
        if image_url is not None:
            job.image_url = image_url
        return self._save(job)

    def set_image(self, job: GenerationJob, image_url: str) -> GenerationJob:
        job.image_url = image_url
        return self._save(job)

    def heartbeat(self, job: GenerationJob) -> GenerationJob:
        job.heartbeat_at = datetime.now(timezone.utc)
        return self._save(job)

    def get(self, job_id: str) -> GenerationJob | None:
        return self.db.query(GenerationJob).filter(GenerationJob.job_id == job_id).one_or_none()
