"""
WebSocket 실시간 채팅 모듈

주요 구성 요소:
- connection: WebSocket 연결 핸들
- presence: 접속 사용자 레지스트리
- rooms: 채팅방별 연결 그룹 관리
- router: 메시지 전달 및 저장
- history: 채팅 입장 시 히스토리 조회
- typing_relay: 타이핑 알림 전달
- hub: 이벤트 디스패처
"""
