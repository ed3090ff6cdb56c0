"""
数据库模型定义
使用SQLAlchemy 2.0+的声明式映射
"""

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, Float, Index, Integer, String
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from swipefeed.datasource.base import NormalizedItem, Provider


class Base(AsyncAttrs, DeclarativeBase):
    """所有模型的基类"""

    pass


class ListingItemDB(Base):
    """Persisted listing: the normalized item plus server-side bookkeeping."""

    __tablename__ = "listing_items"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str] = mapped_column(String(1000), nullable=False, index=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    video_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    embed_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    duration_label: Mapped[str] = mapped_column(String(100), default="N/A")
    genres: Mapped[list] = mapped_column(JSON, default=list)
    performer_name: Mapped[str] = mapped_column(String(255), default="Unknown")
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    # Upstream (or synthetic) view estimate; view_count below is ours
    estimated_view_count: Mapped[int] = mapped_column(Integer, default=0)
    product_url: Mapped[str] = mapped_column(String(1000), default="")
    price: Mapped[int] = mapped_column(Integer, default=980)
    original_price: Mapped[int] = mapped_column(Integer, default=1980)
    sale_ends_at: Mapped[date] = mapped_column(Date, nullable=False)
    rating_value: Mapped[float] = mapped_column(Float, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    provenance: Mapped[dict] = mapped_column(JSON, default=dict)
    source_provider: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # Incremented on every re-save of the same id: a re-ingestion counter
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    popularity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, nullable=False, index=True
    )
    last_updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, nullable=False, index=True
    )

    __table_args__ = (
        Index("idx_provider_updated", "source_provider", "last_updated_at"),
    )

    def apply(self, item: NormalizedItem) -> None:
        """Overwrite the listing fields with ``item``'s values."""
        self.title = item.title
        self.thumbnail_url = item.thumbnail_url
        self.video_url = item.video_url
        self.embed_url = item.embed_url
        self.duration_label = item.duration_label
        self.genres = list(item.genres)
        self.performer_name = item.performer_name
        self.like_count = item.like_count
        self.estimated_view_count = item.view_count
        self.product_url = item.product_url
        self.price = item.price
        self.original_price = item.original_price
        self.sale_ends_at = item.sale_ends_at
        self.rating_value = item.rating_value
        self.review_count = item.review_count
        self.provenance = dict(item.provenance)
        self.source_provider = item.provider_tag.value

    def to_item(self) -> NormalizedItem:
        return NormalizedItem(
            id=self.id,
            title=self.title,
            thumbnail_url=self.thumbnail_url,
            video_url=self.video_url,
            embed_url=self.embed_url,
            duration_label=self.duration_label,
            genres=list(self.genres or []),
            performer_name=self.performer_name,
            like_count=self.like_count,
            view_count=self.estimated_view_count,
            product_url=self.product_url,
            price=self.price,
            original_price=self.original_price,
            sale_ends_at=self.sale_ends_at,
            rating_value=self.rating_value,
            review_count=self.review_count,
            provider_tag=Provider(self.source_provider),
            provenance=dict(self.provenance or {}),
        )

    def __repr__(self) -> str:
        return f"<ListingItem(id={self.id}, title={self.title[:50]})>"
