import argparse

from dotenv import load_dotenv

load_dotenv()

from app.config.settings import settings  # noqa: E402
from app.services.document_store import DocumentStore  # noqa: E402
from app.services.knowledge_service import KnowledgeService  # noqa: E402
from app.utils.s3_utils import S3BlobStore  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Find knowledge entries and blobs that lost their counterpart.")
    parser.add_argument("--delete", action="store_true", help="Remove the orphans that were found")
    args = parser.parse_args()

    store = DocumentStore(settings.DATABASE_URL)
    blobs = S3BlobStore(settings.bucket_name, settings.aws_region, settings.s3_endpoint_url)
    service = KnowledgeService(store, blobs, settings.max_file_size_bytes)

    print("Scanning knowledge base for orphaned metadata and blobs...")
    orphans = service.find_orphans()
    print(f"Found {len(orphans['missingBlobs'])} metadata entries without a blob.")
    for item_id in orphans["missingBlobs"]:
        print(f"  metadata: {item_id}")
    print(f"Found {len(orphans['orphanedBlobs'])} blobs without metadata.")
    for key in orphans["orphanedBlobs"]:
        print(f"  blob: {key}")

    if args.delete and (orphans["missingBlobs"] or orphans["orphanedBlobs"]):
        removed = service.remove_orphans(orphans)
        print(f"Removed {removed} orphans.")


if __name__ == "__main__":
    main()
