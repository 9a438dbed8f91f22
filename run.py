# run.py
from dotenv import load_dotenv
import os
from shaka import create_app

basedir = os.path.abspath(os.path.dirname(__file__))
# 실행 파일과 같은 디렉터리의 .env 파일을 명시적으로 로드합니다.
dotenv_path = os.path.join(basedir, '.env')
load_dotenv(dotenv_path=dotenv_path)

app = create_app()

if __name__ == '__main__':
    host = os.getenv('FLASK_RUN_HOST', '127.0.0.1')
    port = int(os.getenv('FLASK_RUN_PORT', 5000))
    debug = app.config.get('DEBUG', False)
    # 디버그 리로더가 스케줄러를 두 번 띄우지 않도록 리로더는 끕니다.
    app.run(host=host, port=port, debug=debug, use_reloader=False)
