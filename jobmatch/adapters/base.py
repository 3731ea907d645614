from jobmatch.models.sponsor import CandidateSponsor


class BaseSponsorAdapter:
    source_name: str

    def is_configured(self) -> bool:
        raise NotImplementedError

    def search_companies(self, query: str) -> list[CandidateSponsor]:
        raise NotImplementedError
