import argparse

from dotenv import load_dotenv

load_dotenv()

from app.config.settings import settings  # noqa: E402
from app.services.document_store import DocumentStore  # noqa: E402
from app.services.knowledge_service import KnowledgeService  # noqa: E402
from app.utils.s3_utils import S3BlobStore  # noqa: E402


def upload_examples(folder, category, action_button_type, description=None):
    store = DocumentStore(settings.DATABASE_URL)
    store.initialize()
    blobs = S3BlobStore(settings.bucket_name, settings.aws_region, settings.s3_endpoint_url)
    service = KnowledgeService(store, blobs, settings.max_file_size_bytes)
    uploaded = service.upload_folder(folder, category, action_button_type, description)
    for item in uploaded:
        print(f"Uploaded {item['fileName']} -> {item['filePath']}")
    print(f"Upload complete: {len(uploaded)} example(s).")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Register local .js example scripts in the knowledge base.")
    parser.add_argument("folder")
    parser.add_argument("--category", default="examples")
    parser.add_argument("--action-button-type", required=True)
    parser.add_argument("--description")
    args = parser.parse_args()
    upload_examples(args.folder, args.category, args.action_button_type, args.description)
